"""Media normalization commands."""

import mimetypes
from pathlib import Path
from typing import Optional

import click

from sunroad.cli.base import CliCommand
from sunroad.errors import ValidationError
from sunroad.image import (
    OUTPUT_PRESETS,
    CropRegion,
    DisplayGeometry,
    ImageDecoder,
    MediaPipeline,
    OutputSpec,
    RenderedAsset,
)
from sunroad.settings import settings
from sunroad.storage import get_media_url, to_thumb_key


def _parse_display(value: Optional[str]) -> Optional[DisplayGeometry]:
    if not value:
        return None
    try:
        width, height = (float(part) for part in value.lower().split("x"))
    except ValueError:
        raise click.BadParameter("Display size must look like WIDTHxHEIGHT", param_hint="--display")
    return DisplayGeometry(display_width=width, display_height=height)


@click.command(name='normalize-image')
@click.argument('source', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('output', type=click.Path(dir_okay=False, path_type=Path))
@click.option('--preset', type=click.Choice(sorted(OUTPUT_PRESETS)), default='work', show_default=True, help='Output size/format preset')
@click.option('--width', type=int, default=None, help='Override output width in pixels')
@click.option('--height', type=int, default=None, help='Override output height in pixels')
@click.option('--format', 'output_format', type=click.Choice(['jpeg', 'webp', 'png']), default=None, help='Override output format')
@click.option('--quality', type=click.FloatRange(0, 1), default=None, help='Override quality factor (0-1, ignored for png)')
@click.option('--background', default=None, help='Background color used when flattening transparency')
@click.option('--crop', default=None, help='Crop rectangle x,y,width,height (source pixels unless --display is set)')
@click.option('--display', default=None, help='Displayed size WIDTHxHEIGHT the crop was drawn over')
@click.option('--max-dim', type=int, default=None, help='Decode bound for the longest side')
@click.option('--mime-type', default=None, help='MIME type (guessed from the file name by default)')
@click.option('--storage-key', default=None, help='Storage key; also writes the thumbnail variant under thumbs/')
@click.option('--verbose', is_flag=True, help='Show internal error detail')
def normalize_image_command(
    source: Path,
    output: Path,
    preset: str,
    width: Optional[int],
    height: Optional[int],
    output_format: Optional[str],
    quality: Optional[float],
    background: Optional[str],
    crop: Optional[str],
    display: Optional[str],
    max_dim: Optional[int],
    mime_type: Optional[str],
    storage_key: Optional[str],
    verbose: bool,
):
    """Decode, orient, crop and re-encode SOURCE into OUTPUT.

    With --storage-key, a thumbnail variant is rendered from the same crop and
    written to a thumbs/ folder next to OUTPUT, mirroring the storage layout."""
    cmd = NormalizeImageCommand(
        source=source,
        output=output,
        preset=preset,
        width=width,
        height=height,
        output_format=output_format,
        quality=quality,
        background=background,
        crop=crop,
        display=display,
        max_dim=max_dim,
        mime_type=mime_type,
        storage_key=storage_key,
        verbose=verbose,
    )
    cmd.run()


class NormalizeImageCommand(CliCommand):
    """Run the media pipeline on a local file."""

    def __init__(self, *, source: Path, output: Path, preset: str, width, height, output_format,
                 quality, background, crop, display, max_dim, mime_type, storage_key, verbose):
        super().__init__(verbose=verbose)
        self.source = source
        self.output = output
        self.preset = preset
        self.width = width
        self.height = height
        self.output_format = output_format
        self.quality = quality
        self.background = background
        self.crop = crop
        self.display = display
        self.max_dim = max_dim
        self.mime_type = mime_type
        self.storage_key = storage_key

    def output_spec(self) -> OutputSpec:
        base = OUTPUT_PRESETS[self.preset]
        return OutputSpec(
            width=self.width or base.width,
            height=self.height or base.height,
            format=self.output_format or base.format,
            quality=base.quality if self.quality is None else self.quality,
            background_color=self.background or base.background_color,
        )

    async def execute(self):
        spec = self.output_spec()
        crop = CropRegion.parse(self.crop) if self.crop else None
        display = _parse_display(self.display)
        if display is not None and crop is None:
            raise ValidationError("--display requires --crop.")
        mime_type = self.mime_type or mimetypes.guess_type(self.source.name)[0]
        pipeline = MediaPipeline(decoder=ImageDecoder(max_dimension=self.max_dim or self.settings.media_decode_max_dimension))
        data = self.source.read_bytes()

        if not self.storage_key:
            asset = await pipeline.run(
                data, filename=self.source.name, mime_type=mime_type,
                output=spec, crop=crop, display=display,
            )
            self._write(self.output, asset)
            return

        full, thumb = await pipeline.run_with_thumbnail(
            data,
            storage_key=self.storage_key,
            filename=self.source.name,
            mime_type=mime_type,
            output=spec,
            thumbnail=OUTPUT_PRESETS["thumbnail"],
            crop=crop,
            display=display,
        )
        self._write(self.output, full.asset, key=full.key)
        self._write(self.output.parent / "thumbs" / self.output.name, thumb.asset, key=thumb.key)

    def _write(self, path: Path, asset: RenderedAsset, key: Optional[str] = None):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(asset.data)
        label = f" [{key}]" if key else ""
        click.echo(f"{path}: {asset.width}x{asset.height} {asset.mime_type}, {len(asset)} bytes{label}")


@click.command(name='thumb-key')
@click.argument('keys', nargs=-1, required=True)
@click.option('--url', 'with_url', is_flag=True, help='Also print the public URL of each thumbnail')
def thumb_key_command(keys: tuple, with_url: bool):
    """Print the thumbnail storage key for each KEY (category/id/filename)."""
    invalid = 0
    for key in keys:
        thumb = to_thumb_key(key)
        if thumb is None:
            click.echo(f"{key}: not a category/id/filename key", err=True)
            invalid += 1
            continue
        line = thumb
        if with_url:
            url = get_media_url(thumb, settings.media_public_base_url)
            line = f"{thumb}\t{url or '(MEDIA_PUBLIC_BASE_URL not set)'}"
        click.echo(line)
    if invalid:
        click.get_current_context().exit(1)
