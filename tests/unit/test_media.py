"""Media resolution with the browser and network replaced by fakes."""
import pytest
import requests

from md2gslides import media
from md2gslides.image_renderer import RenderedImage
from md2gslides.media import MediaResolver
from md2gslides.models import BodyDefinition, ImageDefinition, SlideDefinition, TextDefinition

UPLOADED = "https://tmpfiles.org/dl/1/rendered.png"


class FakeRenderer:
    """Writes a placeholder PNG file instead of launching a browser."""

    def __init__(self, tmp_dir):
        self.tmp_dir = tmp_dir
        self.rendered = []
        self.closed = False

    def _write(self, name):
        path = self.tmp_dir / f"{name}.png"
        path.write_bytes(b"png")
        return RenderedImage(path, 120, 40)

    async def screenshot(self, html, selector, *, name, **kwargs):
        self.rendered.append(("math", kwargs.get("script_args")))
        return self._write(name)

    async def render_svg(self, svg):
        self.rendered.append(("svg", svg))
        return self._write(f"svg-{len(self.rendered)}")

    async def close(self):
        self.closed = True


@pytest.fixture
def renderer(tmp_path):
    return FakeRenderer(tmp_path)


@pytest.fixture
def uploads(monkeypatch):
    uploaded = []

    def _upload(path):
        uploaded.append(path)
        return UPLOADED

    monkeypatch.setattr(media, "upload_local_file", _upload)
    return uploaded


def _slide(*images, text=None):
    return SlideDefinition(object_id="s", bodies=[BodyDefinition(images=list(images), text=text)])


@pytest.mark.asyncio
async def test_math_is_rendered_and_uploaded(tmp_path, renderer, uploads):
    image = ImageDefinition(source="E=mc^2", type="math")
    slide = _slide(image)

    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve([slide])

    assert image.url == UPLOADED
    assert (image.width, image.height) == (120, 40)
    assert renderer.rendered == [("math", ("E=mc^2", True))]
    assert len(uploads) == 1


@pytest.mark.asyncio
async def test_repeated_formula_resolves_on_every_slide(tmp_path, renderer, uploads):
    slides = [_slide(ImageDefinition(source="x^2", type="math")) for _ in range(3)]

    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve(slides)

    assert [slide.bodies[0].images[0].url for slide in slides] == [UPLOADED] * 3


@pytest.mark.asyncio
async def test_svg_source_is_rendered(tmp_path, renderer, uploads):
    image = ImageDefinition(source="<svg></svg>", type="svg", width=10, height=10)

    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve([_slide(image)])

    assert renderer.rendered == [("svg", "<svg></svg>")]
    # explicit sizes win over the rendered size
    assert (image.width, image.height) == (10, 10)


@pytest.mark.asyncio
async def test_rendered_image_needs_fileio(tmp_path, renderer, caplog):
    slide = _slide(ImageDefinition(source="x", type="math"))

    await MediaResolver(tmp_path, renderer=renderer).resolve([slide])

    assert slide.bodies == []
    assert "use-fileio" in caplog.text


@pytest.mark.asyncio
async def test_missing_local_file_is_dropped(tmp_path, renderer, uploads):
    keep = TextDefinition(raw_text="caption\n")
    slide = _slide(ImageDefinition(url=(tmp_path / "missing.png").as_uri()), text=keep)

    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve([slide])

    assert len(slide.bodies) == 1
    assert slide.bodies[0].images == []
    assert slide.bodies[0].text is keep
    assert uploads == []


@pytest.mark.asyncio
async def test_local_file_is_measured_and_uploaded(tmp_path, renderer, uploads, monkeypatch):
    path = tmp_path / "photo.png"
    path.write_bytes(b"png")
    monkeypatch.setattr(media, "file_image_size", lambda p: (300, 200))
    image = ImageDefinition(url=path.as_uri())

    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve([_slide(image)])

    assert image.url == UPLOADED
    assert (image.width, image.height) == (300, 200)
    assert uploads == [path]


@pytest.mark.asyncio
async def test_failed_background_is_removed(tmp_path, renderer):
    slide = SlideDefinition(
        object_id="s",
        background_image=ImageDefinition(url=(tmp_path / "nope.png").as_uri()),
    )

    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve([slide])

    assert slide.background_image is None


@pytest.mark.asyncio
async def test_remote_size_probe(tmp_path, renderer, monkeypatch):
    monkeypatch.setattr(media, "download", lambda url: b"bytes")
    monkeypatch.setattr(media, "image_size", lambda data: (640, 480))
    image = ImageDefinition(url="https://example.com/a.png")

    await MediaResolver(tmp_path, renderer=renderer).resolve([_slide(image)])

    assert image.url == "https://example.com/a.png"
    assert (image.width, image.height) == (640, 480)


@pytest.mark.asyncio
async def test_remote_probe_failure_keeps_image(tmp_path, renderer, monkeypatch):
    def _fail(url):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(media, "download", _fail)
    image = ImageDefinition(url="https://example.com/a.png")
    slide = _slide(image)

    await MediaResolver(tmp_path, renderer=renderer).resolve([slide])

    assert slide.bodies[0].images == [image]
    assert image.width is None


@pytest.mark.asyncio
async def test_remote_svg_is_downloaded_and_rendered(tmp_path, renderer, uploads, monkeypatch):
    monkeypatch.setattr(media, "download", lambda url: b"<svg>remote</svg>")
    image = ImageDefinition(url="https://example.com/diagram.svg")

    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve([_slide(image)])

    assert renderer.rendered == [("svg", "<svg>remote</svg>")]
    assert image.url == UPLOADED


@pytest.mark.asyncio
async def test_shared_renderer_is_not_closed(tmp_path, renderer, uploads):
    await MediaResolver(tmp_path, use_fileio=True, renderer=renderer).resolve(
        [_slide(ImageDefinition(source="x", type="math"))]
    )

    assert renderer.closed is False
