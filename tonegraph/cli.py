from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path

import numpy as np
from numpy.typing import NDArray
from rich.console import Console
from rich.table import Table

from .audio import write_wav
from .device import OfflineDevice
from .duration import NoteLength
from .logging_utils import DEBUG_ENV, configure_logging, log_exception
from .melody import melody_to_source
from .mml import LOCALES, Melody, ParserState, parse
from .oscillators import OSCILLATOR_KINDS
from .output import play_audio
from .settings import EngineSettings
from .sources import instantiate
from .spinner import Spinner, render_error
from .waveform import Waveform, buffered_waveform_of_file

_LOGGER = logging.getLogger("tonegraph.cli")
_CONSOLE = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tonegraph")
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("mml", type=str, help="MML text to read.")
    common.add_argument("--locale", choices=sorted(LOCALES), default="standard")
    common.add_argument("--octave", type=int, default=None)
    common.add_argument("--length", type=int, default=None, help="Default length denominator.")

    audio = argparse.ArgumentParser(add_help=False)
    audio.add_argument("--tempo", type=float, default=None)
    audio.add_argument("--volume", type=float, default=None)
    audio.add_argument("--wave", choices=list(OSCILLATOR_KINDS), default=None)
    audio.add_argument("--sample", type=Path, default=None, help="Audio file to use as waveform.")
    audio.add_argument("--base-freq", type=float, default=440.0, help="Pitch of --sample.")
    audio.add_argument("--loop", action="store_true", help="Loop the --sample buffer.")

    sub.add_parser("parse", parents=[common], help="Print the parsed melody.")

    render = sub.add_parser("render", parents=[common, audio], help="Render to a wav file.")
    render.add_argument("-o", "--output", type=Path, default=Path("out.wav"))

    sub.add_parser("play", parents=[common, audio], help="Render and play through speakers.")
    return parser


def _parse_melody(args: argparse.Namespace) -> Melody:
    state = ParserState()
    if args.octave is not None:
        state.octave = args.octave
    if args.length is not None:
        state.default_length = NoteLength(1, args.length)
    return parse(args.mml, LOCALES[args.locale], state)


def _print_melody(melody: Melody) -> None:
    table = Table(title=f"{len(melody)} notes")
    table.add_column("#", justify="right")
    table.add_column("scale", justify="right")
    table.add_column("length", justify="right")
    for index, note in enumerate(melody):
        scale = "rest" if note.scale is None else str(note.scale)
        table.add_row(str(index), scale, str(note.length))
    _CONSOLE.print(table)


def _load_waveform(args: argparse.Namespace, settings: EngineSettings) -> Waveform:
    if args.sample is None:
        return settings.oscillator
    data = args.sample.read_bytes()
    return asyncio.run(
        buffered_waveform_of_file(
            data,
            args.base_freq,
            args.loop,
            sample_rate=settings.sample_rate,
        )
    )


def render_melody(
    melody: Melody,
    args: argparse.Namespace,
) -> tuple[NDArray[np.float32], EngineSettings]:
    settings = EngineSettings.from_env(
        tempo=args.tempo,
        volume=args.volume,
        waveform=args.wave,
    )
    waveform = _load_waveform(args, settings)
    source = melody_to_source(
        melody,
        tempo=settings.tempo,
        waveform=waveform,
        envelope=settings.envelope,
        volume=settings.volume,
        reference_frequency=settings.reference_frequency,
    )
    device = OfflineDevice(settings.sample_rate)
    instantiate(source, device, start=0.0)
    return device.render(source.duration), settings


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        melody = _parse_melody(args)

        if args.command == "parse":
            _print_melody(melody)
            return 0

        if args.command == "render":
            with Spinner("Rendering melody"):
                samples, settings = render_melody(melody, args)
            path = write_wav(args.output, samples, sample_rate=settings.sample_rate)
            _CONSOLE.print(f"Wrote {len(melody)} notes to {path} (sr={settings.sample_rate})")
            return 0

        if args.command == "play":
            with Spinner("Rendering melody"):
                samples, settings = render_melody(melody, args)
            play_audio(samples, sample_rate=settings.sample_rate)
            return 0

        parser.print_help()
        return 1
    except Exception as exc:
        debug = bool(os.environ.get(DEBUG_ENV))
        _LOGGER.warning("tonegraph CLI failed: %s", exc, exc_info=debug)
        log_exception("tonegraph CLI", exc)
        render_error("tonegraph CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
