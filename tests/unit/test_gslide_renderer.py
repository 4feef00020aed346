"""Request generation for bound slides."""
import pytest

from md2gslides.gslide_renderer import GSlideRenderer
from md2gslides.layout_matcher import Box, LayoutMatcher
from md2gslides.models import ImageDefinition, SlideDefinition, StyleDefinition, TextDefinition, TextRun

CREATING = ("createSlide", "createShape", "createImage", "createVideo", "createTable")


def _render(extract, presentation, markdown):
    slide = extract(markdown)[0]
    bound = LayoutMatcher(presentation).match(slide)
    return GSlideRenderer().generate(bound, slide)


def _for_object(requests, object_id):
    return [
        (name, body)
        for request in requests
        for name, body in request.items()
        if body.get("objectId") == object_id
    ]


def test_bold_run_follows_insert(extract, presentation):
    requests = _render(extract, presentation, "# T\n\n**bold** text\n")
    body = _for_object(requests, "md-test-0-element")

    assert [name for name, _ in body] == ["insertText", "updateTextStyle"]
    assert body[0][1]["text"] == "bold text\n"
    assert body[0][1]["insertionIndex"] == 0
    update = body[1][1]
    assert update["textRange"] == {"type": "FIXED_RANGE", "startIndex": 0, "endIndex": 4}
    assert update["style"] == {"bold": True}
    assert update["fields"] == "bold"


def test_create_slide_maps_placeholders(extract, presentation):
    requests = _render(extract, presentation, "# Title\n## Subtitle\n")

    assert requests[0] == {
        "createSlide": {
            "objectId": "md-test-0",
            "slideLayoutReference": {"layoutId": "layout-title"},
            "placeholderIdMappings": [
                {"layoutPlaceholderObjectId": "layout-title-title", "objectId": "md-test-0-title"},
                {"layoutPlaceholderObjectId": "layout-title-subtitle", "objectId": "md-test-0-subtitle"},
            ],
        }
    }


@pytest.mark.parametrize(
    "markdown",
    [
        "# T\n\n**bold** and *italic*\n",
        "# T\n\na\n\n---\n\nb\n\n---\n\nc\n",
        "# T\n\n| a | b |\n|---|---|\n| 1 | 2 |\n",
        "# T\n\n@[youtube](dQw4w9WgXcQ){autoplay=true}\n\n![](https://example.com/a.png)\n",
        "# Point {.big}\n",
        "- one\n- two\n    - three\n",
    ],
)
def test_objects_exist_before_they_are_referenced(extract, presentation, markdown):
    requests = _render(extract, presentation, markdown)
    created = set()
    inserted = set()
    for request in requests:
        (name, body), = request.items()
        if name == "createSlide":
            created.add(body["objectId"])
            created.update(m["objectId"] for m in body.get("placeholderIdMappings", []))
            continue
        if name in CREATING:
            assert body["elementProperties"]["pageObjectId"] in created
            created.add(body["objectId"])
            continue
        assert body["objectId"] in created, name
        target = (body["objectId"], str(body.get("cellLocation")))
        if name == "insertText":
            inserted.add(target)
        elif body.get("textRange", {}).get("type") == "FIXED_RANGE":
            assert target in inserted, name


def test_three_columns_create_a_text_box(extract, presentation):
    requests = _render(extract, presentation, "# T\n\na\n\n---\n\nb\n\n---\n\nc\n")
    shapes = [r["createShape"] for r in requests if "createShape" in r]

    assert [s["objectId"] for s in shapes] == ["md-test-0-element-3"]
    assert shapes[0]["shapeType"] == "TEXT_BOX"
    inserts = {r["insertText"]["objectId"]: r["insertText"]["text"] for r in requests if "insertText" in r}
    assert inserts["md-test-0-element"] == "a\n"
    assert inserts["md-test-0-element-2"] == "b\n"
    assert inserts["md-test-0-element-3"] == "c\n"


def test_table_cells_are_filled_row_major(extract, presentation):
    md = "# T\n\n| a | b |\n|---|---|\n| 1 | 2 |\n| 3 | 4 |\n| 5 | 6 |\n| 7 | 8 |\n"
    requests = _render(extract, presentation, md)

    create = [r["createTable"] for r in requests if "createTable" in r]
    assert len(create) == 1
    assert (create[0]["objectId"], create[0]["rows"], create[0]["columns"]) == ("md-test-0-table-1", 5, 2)

    cells = [
        (r["insertText"]["cellLocation"]["rowIndex"], r["insertText"]["cellLocation"]["columnIndex"],
         r["insertText"]["text"])
        for r in requests
        if "insertText" in r and "cellLocation" in r["insertText"]
    ]
    assert cells == [
        (0, 0, "a"), (0, 1, "b"),
        (1, 0, "1"), (1, 1, "2"),
        (2, 0, "3"), (2, 1, "4"),
        (3, 0, "5"), (3, 1, "6"),
        (4, 0, "7"), (4, 1, "8"),
    ]
    header_styles = [
        r["updateTextStyle"] for r in requests
        if "updateTextStyle" in r and r["updateTextStyle"].get("cellLocation", {}).get("rowIndex") == 0
    ]
    assert len(header_styles) == 2
    assert all(s["style"]["bold"] is True for s in header_styles)


def test_indices_are_utf16(extract, presentation):
    requests = _render(extract, presentation, "# T\n\n😀 **bold**\n")
    update = next(
        r["updateTextStyle"] for r in requests
        if "updateTextStyle" in r and r["updateTextStyle"]["objectId"] == "md-test-0-element"
    )

    assert (update["textRange"]["startIndex"], update["textRange"]["endIndex"]) == (3, 7)


def test_bullet_ranges_account_for_removed_tabs(extract, presentation):
    requests = _render(extract, presentation, "# T\n\n- a\n    - b\n\ntext\n\n- c\n")
    bullets = [r["createParagraphBullets"] for r in requests if "createParagraphBullets" in r]

    assert [(b["textRange"]["startIndex"], b["textRange"]["endIndex"]) for b in bullets] == [(0, 5), (9, 11)]
    assert all(b["bulletPreset"] == "BULLET_DISC_CIRCLE_SQUARE" for b in bullets)


def test_ordered_list_preset(extract, presentation):
    requests = _render(extract, presentation, "# T\n\n1. one\n2. two\n")
    bullet = next(r["createParagraphBullets"] for r in requests if "createParagraphBullets" in r)

    assert bullet["bulletPreset"] == "NUMBERED_DIGIT_ALPHA_ROMAN"


def test_notes_need_a_notes_id(extract, presentation):
    slide = extract("# T\n\n??? Remember this\n")[0]
    renderer = GSlideRenderer()

    bound = LayoutMatcher(presentation).match(slide)
    assert not _for_object(renderer.content_requests(bound, slide), "notes-1")

    bound.notes_id = "notes-1"
    notes = _for_object(renderer.content_requests(bound, slide), "notes-1")
    assert notes == [("insertText", {"objectId": "notes-1", "insertionIndex": 0, "text": "Remember this"})]


def test_existing_page_is_not_created_again(extract, presentation):
    slide = extract("# T\n\nbody\n")[0]
    bound = LayoutMatcher(presentation).match(slide)
    bound.page_exists = True

    assert GSlideRenderer().creation_requests(bound) == []


def test_background_image(extract, presentation):
    requests = _render(extract, presentation, "![](https://example.com/bg.png){.background}\n")

    assert requests[1] == {
        "updatePageProperties": {
            "objectId": "md-test-0",
            "pageProperties": {
                "pageBackgroundFill": {"stretchedPictureFill": {"contentUrl": "https://example.com/bg.png"}}
            },
            "fields": "pageBackgroundFill.stretchedPictureFill.contentUrl",
        }
    }


def test_image_keeps_aspect_ratio(extract, presentation):
    requests = _render(extract, presentation, "# T\n\n![](https://example.com/a.png){width=200 height=100}\n")
    image = next(r["createImage"] for r in requests if "createImage" in r)

    assert image["objectId"] == "md-test-0-image-1"
    assert image["url"] == "https://example.com/a.png"
    size = image["elementProperties"]["size"]
    ratio = size["width"]["magnitude"] / size["height"]["magnitude"]
    assert ratio == pytest.approx(2, rel=1e-3)
    transform = image["elementProperties"]["transform"]
    assert (transform["scaleX"], transform["scaleY"], transform["unit"]) == (1, 1, "EMU")


def test_image_padding_shrinks_the_slot():
    renderer = GSlideRenderer()
    slot = Box(0, 0, 952500, 952500)
    plain = renderer._fit(None, None, slot, ImageDefinition(url="x"))
    padded = renderer._fit(None, None, slot, ImageDefinition(url="x", padding=10))

    assert plain == slot
    assert padded == Box(95250, 95250, 762000, 762000)


def test_video_with_autoplay(extract, presentation):
    requests = _render(extract, presentation, "# T\n\n@[youtube](dQw4w9WgXcQ){autoplay=true}\n")
    names = [name for r in requests for name in r]

    video = next(r["createVideo"] for r in requests if "createVideo" in r)
    assert video["source"] == "YOUTUBE"
    assert video["id"] == "dQw4w9WgXcQ"
    assert names.index("updateVideoProperties") == names.index("createVideo") + 1
    assert requests[names.index("updateVideoProperties")]["updateVideoProperties"]["videoProperties"] == {
        "autoPlay": True
    }


def test_big_title_is_centered(extract, presentation):
    requests = _render(extract, presentation, "# Point {.big}\n")
    title = _for_object(requests, "md-test-0-title")

    assert [name for name, _ in title] == ["createShape", "insertText", "updateTextStyle", "updateParagraphStyle"]
    assert title[2][1]["textRange"] == {"type": "ALL"}
    assert 24 <= title[2][1]["style"]["fontSize"]["magnitude"] <= 120
    assert title[3][1]["style"] == {"alignment": "CENTER"}


def test_style_fields_follow_style_keys():
    style = StyleDefinition(italic=True, font_family="Courier New", link="https://example.com")
    slide = SlideDefinition(
        object_id="s",
        title=TextDefinition(raw_text="abc", text_runs=[TextRun(0, 3, style)]),
    )
    bound = LayoutMatcher({}).match(slide)
    update = next(r["updateTextStyle"] for r in GSlideRenderer().generate(bound, slide) if "updateTextStyle" in r)

    assert update["style"] == {
        "italic": True,
        "fontFamily": "Courier New",
        "link": {"url": "https://example.com"},
    }
    assert update["fields"] == "italic,fontFamily,link"


def test_predefined_layout_when_catalog_is_empty(extract):
    slide = extract("# T\n\nbody\n")[0]
    requests = GSlideRenderer().generate(LayoutMatcher({}).match(slide), slide)

    assert requests[0]["createSlide"]["slideLayoutReference"] == {"predefinedLayout": "BLANK"}
    assert [r["createShape"]["objectId"] for r in requests if "createShape" in r] == [
        "md-test-0-title",
        "md-test-0-element",
    ]
