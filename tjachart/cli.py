import argparse
import logging

from tjachart.config import build_config, load_profile
from tjachart.core import ChartGenerator


def build_arg_parser():
        p = argparse.ArgumentParser("tjachart")

        # ------------------
        # Analysis
        # ------------------
        p.add_argument("--sensitivity", type=float, default=None,
                       help="Onset sensitivity, 0.2 (few) to 0.9 (many)")

        # ------------------
        # Notes
        # ------------------
        p.add_argument("--snap", dest="snap_divisions", type=int, default=None,
                       help="Grid slots per measure (16 = sixteenth notes)")
        p.add_argument("--katsu-bias", type=float, default=None,
                       help="-0.6 favours don, 0.6 favours katsu")

        # ------------------
        # Chart
        # ------------------
        p.add_argument("--title", default=None)
        p.add_argument("--level", type=int, default=None, help="Level of the Oni course")
        p.add_argument("--course", default=None,
                       help="Write a single course (Easy/Normal/Hard/Oni) instead of all four")

        # ------------------
        # Misc
        # ------------------
        p.add_argument("--profile", default=None, help="JSON file with default options")
        p.add_argument("--preview", nargs="?", const="", default=None,
                       help="Save an analysis plot (optionally to this path)")
        p.add_argument("-v", "--verbose", action="store_true")

        return p


def build_cfg_from_args(args) -> dict:
        profile = load_profile(args.profile) if args.profile else None
        return build_config(
            profile,
            sensitivity=args.sensitivity,
            snap_divisions=args.snap_divisions,
            katsu_bias=args.katsu_bias,
            title=args.title,
            level=args.level,
            course=args.course,
        )


def main(argv=None):
    parser = build_arg_parser()
    parser.add_argument("audio", help="Path to audio file")
    parser.add_argument("-o", "--output", help="Output chart path")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cfg = build_cfg_from_args(args)

    gen = ChartGenerator(
        audio_path=args.audio,
        cfg=cfg
    )

    gen.generate_chart()
    out = gen.export(args.output)

    if args.preview is not None:
        gen.preview(args.preview or out.with_suffix(".png"))

if __name__ == "__main__":
    main()
