import base64
import json
import uuid

import cv2
import pytest
from rest_framework.test import APIClient

from faceauth.application.enroll_face_service import EnrollFaceService
from faceauth.application.verify_face_service import VerifyFaceService
from faceauth.domain.value_objects import LandmarkSet, Thresholds
from faceauth.presentation import api
from tests.conftest import BASE_FACE, FakeDetector, FakeReferenceStore, marker_image

REF, PROBE, OTHER = 10, 20, 30
PROCESS = str(uuid.uuid4())


def _b64(img) -> str:
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return "data:image/png;base64," + base64.b64encode(buf.tobytes()).decode()


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture
def flow_dir(tmp_path, settings):
    settings.FLOW_LOG_DIR = str(tmp_path / "flows")
    return tmp_path / "flows"


@pytest.fixture
def wired(monkeypatch, base_face, shifted_mouth_face):
    store = FakeReferenceStore({"user-1": marker_image(REF)})
    detector = FakeDetector({REF: base_face, PROBE: LandmarkSet.from_mapping(BASE_FACE), OTHER: shifted_mouth_face})
    monkeypatch.setattr(api, "build_verify_service", lambda: VerifyFaceService(store, detector, Thresholds()))
    monkeypatch.setattr(api, "build_enroll_service", lambda: EnrollFaceService(store, detector))
    return store


class TestCompareEndpoint:
    URL = "/api/faceauth/compare"

    def test_identical_landmarks(self, client):
        body = {"live": {k: list(v) for k, v in BASE_FACE.items()},
                "enrolled": {k: list(v) for k, v in BASE_FACE.items()}}
        resp = client.post(self.URL, body, format="json")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "success"
        assert data["data"]["score"] == pytest.approx(1.0)
        assert data["data"]["is_match"] is True
        assert data["data"]["threshold"] == 0.98

    def test_missing_key_landmark(self, client):
        live = {k: list(v) for k, v in BASE_FACE.items() if k != "NOSE_BASE"}
        enrolled = {k: list(v) for k, v in BASE_FACE.items() if k != "NOSE_BASE"}
        resp = client.post(self.URL, {"live": live, "enrolled": enrolled}, format="json")
        assert resp.status_code == 200
        assert resp.json()["status"] == "false"
        assert resp.json()["error"] == "missing_key_landmark"

    def test_unknown_label(self, client):
        body = {"live": {"THIRD_EYE": [0, 0]}, "enrolled": {"LEFT_EYE": [0, 0]}}
        resp = client.post(self.URL, body, format="json")
        assert resp.json()["error"] == "unknown_landmark_label"

    def test_strict_mismatch(self, client):
        live = {k: list(v) for k, v in BASE_FACE.items()}
        enrolled = {**live, "LEFT_EAR": [0.0, 5.0]}
        resp = client.post(self.URL, {"live": live, "enrolled": enrolled, "strict": True}, format="json")
        assert resp.json()["error"] == "label_count_mismatch"

    def test_malformed_body(self, client):
        resp = client.post(self.URL, {"live": {"LEFT_EYE": [1]}}, format="json")
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_request"


class TestEnrollEndpoint:
    URL = "/api/faceauth/enroll"

    def test_enroll(self, client, wired):
        body = {"uuidProceso": PROCESS, "userId": "user-2", "imageBase64": _b64(marker_image(REF))}
        resp = client.post(self.URL, body, format="json")
        data = resp.json()
        assert data["status"] == "success"
        assert data["data"][0]["reference_uri"] == "mem://user-2.jpg"
        assert "user-2" in wired.images

    def test_enroll_without_face(self, client, wired):
        body = {"uuidProceso": PROCESS, "userId": "user-3", "imageBase64": _b64(marker_image(99))}
        data = client.post(self.URL, body, format="json").json()
        assert data["status"] == "false"
        assert data["reason"] == "no_face"

    @pytest.mark.parametrize("body", [
        {"userId": "user-1", "imageBase64": "x"},
        {"uuidProceso": "not-a-uuid", "userId": "user-1", "imageBase64": "x"},
        {"uuidProceso": PROCESS, "userId": "../evil", "imageBase64": "x"},
        {"uuidProceso": PROCESS, "userId": "user-1"},
        {"uuidProceso": PROCESS, "userId": "user-1", "imageBase64": "bm90IGFuIGltYWdl"},
    ])
    def test_invalid_requests(self, client, wired, body):
        data = client.post(self.URL, body, format="json").json()
        assert data["status"] == "false"
        assert data["reason"] == "invalid_request"


class TestVerifyEndpoints:
    URL = "/api/faceauth/verify"

    def _verify(self, client, marker):
        body = {"uuidProceso": PROCESS, "userId": "user-1", "imageBase64": _b64(marker_image(marker))}
        return client.post(self.URL, body, format="json").json()

    def test_verify_writes_flow_overlay_and_trace(self, client, wired, flow_dir):
        data = self._verify(client, PROBE)
        assert data["status"] == "success"
        item = data["data"][0]
        assert item["is_match"] is True
        assert item["evaluacion"] == pytest.approx(1.0)

        uuid_verif = item["uuid_proceso_verificacion"]
        flow = json.loads((flow_dir / f"{uuid_verif}.txt").read_text(encoding="utf-8"))
        assert flow["uuid_proceso"] == PROCESS
        assert flow["result"]["is_match"] is True
        assert flow["live_landmarks"]["LEFT_EYE"] == [0.0, 0.0]
        assert (flow_dir / f"{uuid_verif}.png").exists()
        assert (flow_dir / f"trace_{PROCESS}.json").exists()

    def test_rejected_verification(self, client, wired, flow_dir):
        data = self._verify(client, OTHER)
        assert data["status"] == "false"
        assert data["reason"] == "below_threshold"
        assert 0.0 < data["data"][0]["evaluacion"] < 0.98

    def test_unknown_user(self, client, wired, flow_dir):
        body = {"uuidProceso": PROCESS, "userId": "ghost", "imageBase64": _b64(marker_image(PROBE))}
        data = client.post(self.URL, body, format="json").json()
        assert data["reason"] == "reference_not_found"
        assert data["data"][0]["evaluacion"] is None

    def test_consult_flow_overlay_and_download(self, client, wired, flow_dir):
        uuid_verif = self._verify(client, PROBE)["data"][0]["uuid_proceso_verificacion"]
        url = f"{self.URL}/{uuid_verif}"

        payload = client.get(url).json()
        assert payload["uuid_proceso_verificacion"] == uuid_verif
        assert payload["_links"]["overlay"].endswith("?overlay=1")

        png = client.get(url, {"overlay": "1"})
        assert png.status_code == 200
        assert png["Content-Type"] == "image/png"
        assert b"".join(png.streaming_content)[:4] == b"\x89PNG"

        txt = client.get(url, {"download": "true"})
        assert txt.status_code == 200
        assert "attachment" in txt["Content-Disposition"]

    def test_consult_unknown(self, client, flow_dir):
        assert client.get(f"{self.URL}/{uuid.uuid4()}").status_code == 404
        assert client.get(f"{self.URL}/not-a-uuid").status_code == 404

    def test_trace(self, client, wired, flow_dir):
        self._verify(client, PROBE)
        self._verify(client, OTHER)
        data = client.get(f"/api/faceauth/trace/{PROCESS}", {"limit": 1}).json()
        assert data["count"] == 2
        assert data["page"]["returned"] == 1
        assert data["page"]["has_more"] is True
        # más nuevo primero
        assert data["items"][0]["reason"] == "below_threshold"

        expanded = client.get(f"/api/faceauth/trace/{PROCESS}", {"expand": "1"}).json()
        assert all("result" in it for it in expanded["items"])

    def test_trace_bad_params(self, client, flow_dir):
        assert client.get(f"/api/faceauth/trace/{PROCESS}", {"offset": "x"}).status_code == 400
        assert client.get("/api/faceauth/trace/not-a-uuid").status_code == 400


class TestImageUrl:
    URL = "/api/faceauth/enroll"

    @pytest.fixture
    def allowed_dir(self, tmp_path, monkeypatch):
        faces = tmp_path / "captures"
        faces.mkdir()
        cv2.imwrite(str(faces / "probe.png"), marker_image(REF))
        cv2.imwrite(str(tmp_path / "outside.png"), marker_image(REF))
        monkeypatch.setenv("IMAGE_URL_ALLOWED_PREFIXES", str(faces))
        return faces

    def _enroll(self, client, url):
        body = {"uuidProceso": PROCESS, "userId": "user-9", "imageUrl": url}
        return client.post(self.URL, body, format="json").json()

    def test_enroll_from_allowed_local_path(self, client, wired, allowed_dir):
        data = self._enroll(client, str(allowed_dir / "probe.png"))
        assert data["status"] == "success"
        assert "user-9" in wired.images

    def test_file_uri_is_accepted(self, client, wired, allowed_dir):
        assert self._enroll(client, f"file://{allowed_dir / 'probe.png'}")["status"] == "success"

    @pytest.mark.parametrize("relative", ["../outside.png", "../captures_other/probe.png"])
    def test_paths_outside_allow_list_are_rejected(self, client, wired, allowed_dir, relative):
        data = self._enroll(client, f"{allowed_dir}/{relative}")
        assert data["reason"] == "invalid_request"
        assert "no permitido" in data["message"]
        assert "user-9" not in wired.images

    def test_remote_urls_need_explicit_prefix(self, client, wired, allowed_dir):
        for url in ("http://169.254.169.254/latest/meta-data", "s3://private-bucket/x.jpg"):
            assert self._enroll(client, url)["reason"] == "invalid_request"

    def test_image_url_disabled_by_default(self, client, wired, tmp_path, monkeypatch):
        monkeypatch.delenv("IMAGE_URL_ALLOWED_PREFIXES", raising=False)
        cv2.imwrite(str(tmp_path / "probe.png"), marker_image(REF))
        assert self._enroll(client, str(tmp_path / "probe.png"))["reason"] == "invalid_request"


class TestImageUrlAllowList:
    @pytest.mark.parametrize("url,allowed", [
        ("https://cdn.example.com/faces/a.jpg", True),
        ("https://cdn.example.com/faces", True),
        ("https://cdn.example.com/faces-evil/a.jpg", False),
        ("https://cdn.example.com.evil.net/faces/a.jpg", False),
        ("s3://bucket/faces/a.jpg", True),
        ("s3://bucket/other/a.jpg", False),
    ])
    def test_remote_prefixes(self, url, allowed):
        prefixes = ["https://cdn.example.com/faces/", "s3://bucket/faces"]
        assert api._image_url_allowed(url, prefixes) is allowed

    def test_remote_prefix_does_not_open_local_paths(self, tmp_path):
        assert not api._image_url_allowed(str(tmp_path / "a.png"), ["https://cdn.example.com/"])
