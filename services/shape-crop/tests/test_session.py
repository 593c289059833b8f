import io
import json
from concurrent.futures import ThreadPoolExecutor
from datetime import date

from PIL import Image

from shapecrop.config import MAX_OUTPUT_SIZE, Settings
from shapecrop.editor.state import Click
from shapecrop.geometry.shapes import CustomShape
from shapecrop.session import AppSession, Step

TRIANGLE_EVENTS = [
    {"type": "click", "x": 100, "y": 50},
    {"type": "click", "x": 500, "y": 50},
    {"type": "click", "x": 300, "y": 250},
    {"type": "click", "x": 104, "y": 52},
]


def upload(client, make_png, width=1000, height=500):
    return client.post(
        "/session/image",
        files={"file": ("photo.png", make_png(width, height), "image/png")},
    )


def test_full_custom_shape_flow(client, make_png):
    summary = upload(client, make_png).json()
    assert summary["step"] == "shapes"
    assert summary["image"] == {"filename": "photo.png", "width": 1000, "height": 500}

    # Selecting the placeholder opens the editor on a canvas fitted to the image.
    editor = client.post("/session/shape", json={"shape": {"kind": "template", "id": "custom", "name": "Draw"}}).json()
    assert editor["step"] == "custom-draw"
    assert editor["editor"]["canvas_size"] == {"width": 600, "height": 300}

    state = client.post("/session/editor/events", json={"events": TRIANGLE_EVENTS}).json()
    assert state["mode"] == "editing"
    assert state["can_complete"] is True

    summary = client.post("/session/editor/complete").json()
    assert summary["step"] == "crop"
    # Canvas size travels with the polygon from the editor.
    assert summary["selected_shape"]["canvas_size"] == {"width": 600, "height": 300}

    crop = client.post("/session/crop", json={}).json()
    assert crop == {"step": "download", "width": 1000, "height": 500}

    resp = client.get("/session/download")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert f"cropped-image-{date.today().isoformat()}.png" in resp.headers["content-disposition"]
    img = Image.open(io.BytesIO(resp.content))
    assert img.mode == "RGBA"
    assert img.getpixel((500, 150))[3] == 0
    assert img.getpixel((5, 5))[3] == 255


def test_complete_refused_while_drawing(client, make_png):
    upload(client, make_png)
    client.post("/session/custom-draw", json={})
    client.post("/session/editor/events", json={"events": TRIANGLE_EVENTS[:3]})
    resp = client.post("/session/editor/complete")
    assert resp.status_code == 400


def test_display_coordinates_are_scaled(client, make_png):
    upload(client, make_png)
    client.post("/session/custom-draw", json={})
    state = client.post("/session/editor/events", json={"events": [
        {"type": "click", "x": 150, "y": 75, "display_width": 300, "display_height": 150},
    ]}).json()
    assert state["points"] == [{"x": 300, "y": 150}]


def test_saved_shape_goes_straight_to_crop_at_fixed_or_native_size(client, make_png):
    upload(client, make_png)
    shape = {
        "kind": "custom",
        "id": "shape-1",
        "name": "Saved",
        "points": [{"x": 0, "y": 0}, {"x": 10, "y": 0}, {"x": 0, "y": 10}],
        "canvas_size": {"width": 100, "height": 100},
    }
    summary = client.post("/session/shape", json={"shape": shape}).json()
    assert summary["step"] == "crop"
    assert summary["editor"] is None
    assert client.post("/session/crop", json={"mode": "keep"}).json()["width"] == 1000
    assert client.post("/session/back").json()["step"] == "crop"
    assert client.post("/session/back").json()["step"] == "shapes"


def test_reedit_saved_shape_rescales_onto_editor_canvas(client, make_png):
    upload(client, make_png)
    initial = {
        "kind": "custom",
        "points": [{"x": 0, "y": 0}, {"x": 100, "y": 0}, {"x": 50, "y": 100}],
        "canvas_size": {"width": 100, "height": 100},
    }
    state = client.post("/session/custom-draw", json={"initial": initial}).json()
    assert state["mode"] == "editing"
    assert state["points"][1] == {"x": 600, "y": 0}
    assert state["points"][2] == {"x": 300, "y": 300}


def test_save_current_shape_to_store(client, make_png):
    upload(client, make_png)
    client.post("/session/custom-draw", json={})
    client.post("/session/editor/events", json={"events": TRIANGLE_EVENTS})
    resp = client.post("/session/save", json={"name": "Triangle"})
    assert resp.status_code == 200
    saved = client.get("/shapes").json()["shapes"]
    assert saved[0]["name"] == "Triangle"
    assert saved[0]["canvas_size"] == {"width": 600, "height": 300}


def test_steps_require_an_image(client):
    assert client.post("/session/custom-draw", json={}).status_code == 409
    assert client.post("/session/crop", json={}).status_code == 409
    assert client.get("/session/download").status_code == 409
    assert client.post("/session/editor/events", json={"events": []}).status_code == 409


def test_bad_upload_returns_error_and_stays_on_upload(client):
    resp = client.post("/session/image", files={"file": ("x.png", b"garbage", "image/png")})
    assert resp.status_code == 422
    assert resp.json()["error"].startswith("image load failed")
    assert client.get("/session").json()["step"] == "upload"


def test_reset_clears_everything(client, make_png):
    upload(client, make_png)
    summary = client.delete("/session").json()
    assert summary["step"] == "upload"
    assert summary["image"] is None


def test_stale_decode_is_ignored():
    session = AppSession(Settings())
    first = session.begin_image_load()
    second = session.begin_image_load()
    assert session.finish_image_load(first, "old.png", Image.new("RGB", (10, 10))) is False
    assert session.source is None
    assert session.finish_image_load(second, "new.png", Image.new("RGB", (20, 10))) is True
    assert session.source.filename == "new.png"
    assert session.step is Step.SHAPES


def test_reset_invalidates_pending_decode():
    session = AppSession(Settings())
    token = session.begin_image_load()
    session.reset()
    assert session.finish_image_load(token, "late.png", Image.new("RGB", (10, 10))) is False
    assert session.step is Step.UPLOAD


def test_stateless_crop_endpoint(client, make_png):
    shape = {
        "kind": "custom",
        "points": [{"x": 0, "y": 0}, {"x": 10, "y": 0}, {"x": 0, "y": 10}],
        "canvas_size": {"width": 100, "height": 100},
    }
    resp = client.post(
        "/crop",
        files={"file": ("photo.png", make_png(1000, 500), "image/png")},
        data={"shape": json.dumps(shape), "filename": "mine"},
    )
    assert resp.status_code == 200
    assert "mine-" in resp.headers["content-disposition"]
    assert Image.open(io.BytesIO(resp.content)).size == (1000, 500)


def test_stateless_crop_template_uses_fixed_square(client, make_png):
    resp = client.post(
        "/crop",
        files={"file": ("photo.png", make_png(1000, 500), "image/png")},
        data={"shape": json.dumps({"kind": "template", "id": "custom", "name": "Draw"})},
    )
    assert Image.open(io.BytesIO(resp.content)).size == (512, 512)


def test_stateless_crop_rejects_bad_shape(client, make_png):
    resp = client.post(
        "/crop",
        files={"file": ("photo.png", make_png(10, 10), "image/png")},
        data={"shape": "{}"},
    )
    assert resp.status_code == 400


def test_custom_shape_model_is_serializable():
    shape = CustomShape(points=[], canvas_size={"width": 1, "height": 1})
    assert json.loads(shape.model_dump_json())["kind"] == "custom"


def test_select_stored_shape_by_id(client, make_png):
    upload(client, make_png)
    shape_id = client.post("/shapes", json={
        "name": "Stored",
        "points": [{"x": 0, "y": 0}, {"x": 60, "y": 0}, {"x": 0, "y": 40}],
        "canvas_size": {"width": 600, "height": 400},
    }).json()["id"]
    summary = client.post("/session/shape", json={"shape_id": shape_id}).json()
    assert summary["step"] == "crop"
    assert summary["selected_shape"]["id"] == shape_id
    assert summary["selected_shape"]["icon"] == "🎨"
    assert client.post("/session/shape", json={"shape_id": "nope"}).status_code == 404
    assert client.post("/session/shape", json={}).status_code == 400


ZERO_WIDTH_SHAPE = {
    "kind": "custom",
    "points": [{"x": 0, "y": 0}, {"x": 10, "y": 0}, {"x": 0, "y": 10}],
    "canvas_size": {"width": 0, "height": 100},
}


def test_stateless_crop_rejects_empty_canvas_size(client, make_png):
    resp = client.post(
        "/crop",
        files={"file": ("photo.png", make_png(10, 10), "image/png")},
        data={"shape": json.dumps(ZERO_WIDTH_SHAPE)},
    )
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_custom_draw_rejects_empty_canvas_size(client, make_png):
    upload(client, make_png)
    assert client.post("/session/custom-draw", json={"initial": ZERO_WIDTH_SHAPE}).status_code == 422
    assert client.post("/session/shape", json={"shape": ZERO_WIDTH_SHAPE}).status_code == 422
    assert client.get("/session").json()["step"] == "shapes"


def test_negative_display_size_is_rejected(client, make_png):
    upload(client, make_png)
    client.post("/session/custom-draw", json={})
    resp = client.post("/session/editor/events", json={"events": [
        {"type": "click", "x": 10, "y": 10, "display_width": -300, "display_height": 150},
    ]})
    assert resp.status_code == 422


def test_stateless_crop_output_size_is_bounded(client, make_png):
    resp = client.post(
        "/crop",
        files={"file": ("photo.png", make_png(10, 10), "image/png")},
        data={
            "shape": json.dumps({"kind": "template", "id": "custom", "name": "Draw"}),
            "output_size": str(MAX_OUTPUT_SIZE + 1),
        },
    )
    assert resp.status_code == 422


def test_concurrent_event_batches_are_not_lost():
    session = AppSession(Settings())
    token = session.begin_image_load()
    session.finish_image_load(token, "photo.png", Image.new("RGB", (1000, 500)))
    session.open_editor()

    # 200 clicks on a 25px grid: no click lands within the close radius of another.
    clicks = [Click(x=30 + (i % 20) * 25, y=30 + (i // 20) * 25) for i in range(200)]
    batches = [clicks[i:i + 10] for i in range(0, len(clicks), 10)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda batch: session.dispatch_all((c, None) for c in batch), batches))

    assert len(session.editor.points) == len(clicks)
    assert {(p.x, p.y) for p in session.editor.points} == {(c.x, c.y) for c in clicks}
