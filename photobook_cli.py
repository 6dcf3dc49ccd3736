#!/usr/bin/env python3
"""
Photo Book Editor (command line)

Edits a photo-book project stored in a directory: adds photos and text to
spreads, lists layers, reorders and adds spreads, and renders spreads to
image files. Every command opens an editing session, applies one change and
saves the spread before exiting.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from photobook.config import DEFAULT_THEME, TEXT_SWATCHES, THEMES
from photobook.editor import (
    AddImage, AddSpread, AddText, Editor, ReorderSpreads, SetTextColor, SetTheme, SetZoom,
)
from photobook.models import ImageObject, Viewport
from photobook.services import DirectoryBlobStore, ImageService, KeyValueState

STATE_FILE = "state.json"
BLOBS_DIR = "blobs"


async def open_editor(args, spread_index: int = 0) -> Editor:
    project = Path(args.project)
    blobs = DirectoryBlobStore(project / BLOBS_DIR)
    state = KeyValueState(project / STATE_FILE)
    return await Editor.open(blobs, state, Viewport(args.width, args.height), spread_index)


def report_notices(editor: Editor) -> bool:
    """Print pending notices; returns True if any of them was an error."""
    failed = False
    for notice in editor.drain_notices():
        print(f"{notice.level.upper()}: {notice.message}", file=sys.stderr)
        failed = failed or notice.level == 'error'
    return failed


async def cmd_info(args) -> int:
    editor = await open_editor(args)
    status = editor.status()
    print(f"Project:   {Path(args.project).resolve()}")
    print(f"Pages:     {editor.navigator.total_pages} ({status.spread_count} content spreads)")
    print(f"Zoom:      {status.zoom:.1f}")
    print(f"Theme:     {status.theme}")
    print(f"Saved:     {len(status.saved_spreads)} spread(s)")
    for meta in status.saved_spreads:
        if meta.page_range is None:
            pages = "cover"
        elif meta.page_range[0] == meta.page_range[1]:
            pages = f"page {meta.page_range[0]}"
        else:
            pages = f"pages {meta.page_range[0]}-{meta.page_range[1]}"
        print(f"  - {meta.key:<12} {pages}")
    return 1 if report_notices(editor) else 0


async def cmd_add_image(args) -> int:
    editor = await open_editor(args, args.spread)
    try:
        data = Path(args.file).read_bytes()
    except OSError as e:
        print(f"Error: cannot read {args.file}: {e}", file=sys.stderr)
        return 1

    object_id = await editor.dispatch(AddImage(data, args.x, args.y))
    if object_id is not None:
        print(f"Added image {object_id} to {editor.navigator.page_label()}")
    await editor.close()
    return 1 if report_notices(editor) or object_id is None else 0


async def cmd_add_text(args) -> int:
    editor = await open_editor(args, args.spread)
    object_id = await editor.dispatch(AddText(args.text, args.x, args.y, args.size))
    recoloured = True
    if args.color:
        recoloured = await editor.dispatch(SetTextColor(object_id, args.color))
    print(f"Added text {object_id} to {editor.navigator.page_label()}")
    await editor.close()
    return 1 if report_notices(editor) or not recoloured else 0


async def cmd_layers(args) -> int:
    editor = await open_editor(args, args.spread)
    status = editor.status()
    print(f"{status.page_label}: {len(status.layers)} layer(s), bottom to top")
    for item in status.layers:
        hidden = "" if item.visible else " (hidden)"
        print(f"  {item.z:>2}  {item.name:<6} {item.id}{hidden}")
    return 1 if report_notices(editor) else 0


async def cmd_goto(args) -> int:
    editor = await open_editor(args, args.spread)
    layout = editor.navigator.layout
    print(f"Spread {editor.current_spread}: {editor.navigator.page_label()}")
    print(f"Page size: {layout.page_width}x{layout.page_height}px, gutter {layout.gutter}px")
    for page in layout.pages:
        rect = page.rect
        flags = " locked" if page.locked else ""
        print(f"  {page.marker_name:<12} x={rect.x:.0f} y={rect.y:.0f}{flags}")
    return 1 if report_notices(editor) else 0


async def cmd_reorder(args) -> int:
    editor = await open_editor(args, args.source)
    moved = await editor.dispatch(ReorderSpreads(args.source, args.target))
    if moved:
        print(f"Moved spread {args.source} to {args.target}")
    else:
        print("Spreads were not reordered")
    return 1 if report_notices(editor) or not moved else 0


async def cmd_add_spread(args) -> int:
    editor = await open_editor(args)
    added = await editor.dispatch(AddSpread())
    print(f"Book has {editor.navigator.total_pages} pages")
    return 1 if report_notices(editor) or not added else 0


async def cmd_preferences(args) -> int:
    editor = await open_editor(args)
    if args.zoom is not None:
        await editor.dispatch(SetZoom(args.zoom))
    if args.theme is not None:
        await editor.dispatch(SetTheme(args.theme))
    status = editor.status()
    print(f"Zoom: {status.zoom:.1f}, theme: {status.theme}")
    return 1 if report_notices(editor) else 0


async def cmd_render(args) -> int:
    editor = await open_editor(args, args.spread)
    images = {}
    for obj in editor.scene.objects():
        if isinstance(obj, ImageObject) and obj.store_key and obj.store_key not in images:
            images[obj.store_key] = await editor.photos.image_bytes(obj.store_key)

    service = ImageService()
    if args.thumbnail:
        image = service.render_thumbnail(editor.navigator.layout, editor.scene.objects(), images)
    else:
        image = service.render_spread(editor.navigator.layout, editor.scene.objects(), images)

    output = Path(args.output)
    if output.suffix.lower() in ('.jpg', '.jpeg'):
        image = image.convert('RGB')
    try:
        image.save(output)
    except (OSError, ValueError) as e:
        print(f"Error: cannot write {output}: {e}", file=sys.stderr)
        return 1

    print(f"Rendered {editor.navigator.page_label()} to {output}")
    return 1 if report_notices(editor) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Edit the spreads of a photo-book project stored in a directory.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s mybook info
  %(prog)s mybook add-image 1 beach.jpg                # Centred on page 1
  %(prog)s mybook add-text 2 "Summer 2024" --x 300 --y 120 --color "#ff0000"
  %(prog)s mybook layers 2
  %(prog)s mybook reorder 3 10                         # Move spread 3 to position 10
  %(prog)s mybook add-spread
  %(prog)s mybook render 2 spread2.png --thumbnail
  %(prog)s mybook preferences --zoom 1.2 --theme dark
        """
    )

    parser.add_argument('project', help='Project directory (created if missing)')
    parser.add_argument('--width', type=int, default=1280, help='Viewport width in pixels (default: 1280)')
    parser.add_argument('--height', type=int, default=800, help='Viewport height in pixels (default: 800)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug logging')

    sub = parser.add_subparsers(dest='command', required=True)

    info = sub.add_parser('info', help='Show book size, preferences and saved spreads')
    info.set_defaults(func=cmd_info)

    add_image = sub.add_parser('add-image', help='Add a photo to a spread')
    add_image.add_argument('spread', type=int, help='Spread index (0 = cover)')
    add_image.add_argument('file', help='Image file')
    add_image.add_argument('--x', type=float, help='Left edge in canvas pixels')
    add_image.add_argument('--y', type=float, help='Top edge in canvas pixels')
    add_image.set_defaults(func=cmd_add_image)

    add_text = sub.add_parser('add-text', help='Add a text box to a spread')
    add_text.add_argument('spread', type=int, help='Spread index (0 = cover)')
    add_text.add_argument('text', help='Text to place')
    add_text.add_argument('--x', type=float, help='Left edge in canvas pixels')
    add_text.add_argument('--y', type=float, help='Top edge in canvas pixels')
    add_text.add_argument('--size', type=int, default=28, help='Font size (default: 28)')
    add_text.add_argument('--color',
                          help=f'Text colour as #RRGGBB (swatches: {", ".join(TEXT_SWATCHES)})')
    add_text.set_defaults(func=cmd_add_text)

    layers = sub.add_parser('layers', help='List the layers of a spread')
    layers.add_argument('spread', type=int)
    layers.set_defaults(func=cmd_layers)

    goto = sub.add_parser('goto', help='Show the page layout of a spread')
    goto.add_argument('spread', type=int)
    goto.set_defaults(func=cmd_goto)

    reorder = sub.add_parser('reorder', help='Move a content spread to another position')
    reorder.add_argument('source', type=int, help='Spread to move (2 or later)')
    reorder.add_argument('target', type=int, help='New position (2 or later)')
    reorder.set_defaults(func=cmd_reorder)

    add_spread = sub.add_parser('add-spread', help='Add two pages to the end of the book')
    add_spread.set_defaults(func=cmd_add_spread)

    preferences = sub.add_parser('preferences', help='Change zoom or theme')
    preferences.add_argument('--zoom', type=float, help='Zoom factor (0.5-2.0)')
    preferences.add_argument('--theme', choices=sorted(THEMES), help=f'Theme (default: {DEFAULT_THEME})')
    preferences.set_defaults(func=cmd_preferences)

    render = sub.add_parser('render', help='Render a spread to an image file')
    render.add_argument('spread', type=int)
    render.add_argument('output', help='Output file (.png or .jpg)')
    render.add_argument('--thumbnail', action='store_true', help='Render a thumbnail-strip sized image')
    render.set_defaults(func=cmd_render)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        exit_code = asyncio.run(args.func(args))
    except ValueError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
