from tjachart import ChartGenerator
from tjachart.config import build_config, load_profile

AUDIO_FILE_PATH = "path/to/your/audiofile.wav"
PROFILE = None # path to a JSON profile, e.g. {"sensitivity": 0.7, "katsu_bias": 0.2}

cfg = build_config(load_profile(PROFILE) if PROFILE else None, title="Demo Song")

generator = ChartGenerator(AUDIO_FILE_PATH, cfg=cfg)
chart = generator.generate_chart()

# Easy/Normal/Hard/Oni in one .tja
generator.export("demo.tja")

# Optional preview
generator.preview("demo_analysis.png")
