"""
Command-line entry point for Chord Overlay.
"""

import json
import logging
import sys
from pathlib import Path

import click

from chord_overlay import __version__
from chord_overlay.core.classifier import TokenClassifier
from chord_overlay.core.errors import ChordOverlayError, InvalidInput
from chord_overlay.core.key_estimator import estimate_key
from chord_overlay.core.models import RecognizedFragment, TranspositionState
from chord_overlay.core.transposer import calculate_capo, transpose_chord, transpose_tokens


def _read_fragments(path: Path, width, height):
    """Read a fragments file: a list of fragments, or an object with page size."""
    with open(path, "r") as f:
        data = json.load(f)

    if isinstance(data, dict):
        width = width or data.get("width")
        height = height or data.get("height")
        items = data.get("fragments", [])
    else:
        items = data

    if not width or not height:
        raise click.UsageError("Page size unknown: pass --width and --height")

    return [RecognizedFragment.from_dict(item) for item in items], float(width), float(height)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="chord-overlay")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """Chord Overlay - detect and transpose chord symbols on sheet music."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--out", "-o", "out_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("strips"),
    show_default=True,
    help="Directory for the cropped strips and manifest.json.",
)
@click.option("--page", type=int, default=0, show_default=True, help="Page number for PDF input (0-indexed).")
@click.option("--dpi", type=int, default=150, show_default=True, help="Render resolution for PDF input.")
def strips(image: Path, out_dir: Path, page: int, dpi: int) -> None:
    """Crop the text strips of a page image for a text recognizer."""
    from chord_overlay.scanner.strip_scanner import StripScanner
    from chord_overlay.utils.image_processing import load_page_bitmap, render_pdf_pages

    try:
        if image.suffix.lower() == ".pdf":
            pages = render_pdf_pages(image, pages=[page], dpi=dpi)
            if not pages:
                raise click.ClickException(f"{image} has no page {page}")
            bitmap = pages[0]
        else:
            bitmap = load_page_bitmap(image)
        found = StripScanner().scan(bitmap)
    except InvalidInput as e:
        raise click.ClickException(f"Scan failed: {e}")

    out_dir.mkdir(parents=True, exist_ok=True)
    manifest = {"width": bitmap.width, "height": bitmap.height, "strips": []}
    for strip in found:
        filename = f"{strip.id}.jpg"
        (out_dir / filename).write_bytes(strip.cropped_image)
        manifest["strips"].append({
            "id": strip.id,
            "top_y": strip.top_y,
            "height": strip.height,
            "scale": strip.scale,
            "file": filename,
        })

    with open(out_dir / "manifest.json", "w") as f:
        json.dump(manifest, f, indent=2)

    click.echo(f"Wrote {len(found)} strip(s) to {out_dir}")


@main.command()
@click.argument("fragments_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--width", type=float, default=None, help="Page width in pixels.")
@click.option("--height", type=float, default=None, help="Page height in pixels.")
@click.option("--semitones", "-s", type=int, default=0, show_default=True, help="Transpose by this many semitones.")
@click.option("--flats/--sharps", "prefer_flats", default=None, help="Accidental style of transposed chords.")
@click.option("--json", "as_json", is_flag=True, help="Print tokens as JSON.")
def classify(fragments_file: Path, width, height, semitones: int, prefer_flats, as_json: bool) -> None:
    """Pick chord tokens out of recognized text fragments (page coordinates)."""
    try:
        fragments, width, height = _read_fragments(fragments_file, width, height)
        result = TokenClassifier().classify(fragments, width, height)
    except ChordOverlayError as e:
        raise click.ClickException(str(e))

    state = TranspositionState(semitones, prefer_flats)
    _echo_tokens(result.accepted_tokens, estimate_key(result.roots), state, as_json)


def _echo_tokens(tokens, key, state: TranspositionState, as_json: bool) -> None:
    """Print accepted tokens under a transposition, with the key estimate."""
    tokens = transpose_tokens(tokens, state)

    if as_json:
        click.echo(json.dumps({
            "key": key,
            "tokens": [
                {"text": t.text, "original": t.original_text, "x_pct": t.x_pct, "y_pct": t.y_pct}
                for t in tokens
            ],
        }, indent=2))
        return

    if not tokens:
        click.echo("No chords detected")
        return

    for token in tokens:
        click.echo(f"{token.text:<10} ({token.x_pct:5.1f}%, {token.y_pct:5.1f}%)")
    if key:
        click.echo(f"Estimated key: {transpose_chord(key, state.semitone_offset, state.prefer_flats)}")


@main.command("text-layer")
@click.argument("pdf", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--page", "pages", type=int, multiple=True, help="Page to scan (0-indexed); repeatable. Default: all pages.")
@click.option("--semitones", "-s", type=int, default=0, show_default=True, help="Transpose by this many semitones.")
@click.option("--flats/--sharps", "prefer_flats", default=None, help="Accidental style of transposed chords.")
@click.option("--json", "as_json", is_flag=True, help="Print tokens as JSON.")
def text_layer(pdf: Path, pages, semitones: int, prefer_flats, as_json: bool) -> None:
    """Read chord symbols from the text layer of a typeset PDF."""
    from chord_overlay.scanner.text_layer import TextLayerScanner

    result = TextLayerScanner().scan_document(pdf, list(pages) or None)
    for page in result.pages:
        if not page.success:
            click.echo(f"Page {page.page_index}: {page.error_message}", err=True)

    state = TranspositionState(semitones, prefer_flats)
    _echo_tokens(result.tokens, result.estimated_key, state, as_json)


@main.command()
@click.argument("chords", nargs=-1, required=True)
@click.option("--semitones", "-s", type=int, required=True, help="Semitones to move (negative = down).")
@click.option("--flats/--sharps", "prefer_flats", default=None, help="Accidental style of the result.")
def transpose(chords, semitones: int, prefer_flats) -> None:
    """Transpose chord symbols."""
    click.echo(" ".join(transpose_chord(c, semitones, prefer_flats) for c in chords))


@main.command()
@click.argument("key")
@click.argument("shape")
def capo(key: str, shape: str) -> None:
    """Find the capo fret to play a song in KEY with SHAPE chords."""
    result = calculate_capo(key, shape)
    if result is None:
        raise click.ClickException(f"Cannot read keys {key!r} and {shape!r}")
    click.echo(f"Capo {result.fret} (transpose {result.transposition:+d})")


@main.command()
@click.argument("fragments_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), required=True)
@click.option("--width", type=float, default=None, help="Page width in pixels.")
@click.option("--height", type=float, default=None, help="Page height in pixels.")
@click.option("--semitones", "-s", type=int, default=0, show_default=True)
@click.option("--flats/--sharps", "prefer_flats", default=None)
@click.option("--title", default=None, help="Chart title.")
def export(fragments_file: Path, output: Path, width, height, semitones: int, prefer_flats, title) -> None:
    """Write the chords of a page as a MusicXML chord chart."""
    from chord_overlay.export.musicxml_exporter import ChordChartExporter, ChordChartExportOptions

    try:
        fragments, width, height = _read_fragments(fragments_file, width, height)
        result = TokenClassifier().classify(fragments, width, height)
    except ChordOverlayError as e:
        raise click.ClickException(str(e))

    exporter = ChordChartExporter(ChordChartExportOptions(title=title))
    path = exporter.export(
        result.accepted_tokens, output, TranspositionState(semitones, prefer_flats)
    )
    click.echo(f"Exported chart to {path}")


if __name__ == "__main__":
    sys.exit(main())
