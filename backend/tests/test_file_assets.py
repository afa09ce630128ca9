from __future__ import annotations

import pytest

from urocareerz.services import s3_assets


def test_upload_rules_per_kind():
    assert s3_assets.validate_upload(kind="avatar", file_name="me.PNG", file_size=1024).prefix == "avatars"
    with pytest.raises(s3_assets.UploadRejected, match="Only PDF, DOC, and DOCX files are allowed"):
        s3_assets.validate_upload(kind="resume", file_name="cv.png", file_size=1024)
    with pytest.raises(s3_assets.UploadRejected, match="Maximum size is 2MB"):
        s3_assets.validate_upload(kind="avatar", file_name="me.jpg", file_size=3 * 1024 * 1024)


def test_keys_are_scoped_to_owner():
    key = s3_assets.make_user_file_key(kind="resume", user_id="usr_1", file_name="../My CV.pdf")
    assert key.startswith("resumes/usr_1/")
    assert key.endswith("-My_CV.pdf")
    assert s3_assets.owner_of_key(key) == "usr_1"
    assert s3_assets.owner_of_key("other/usr_1/x.pdf") is None

    url = "https://bucket.s3.us-east-1.amazonaws.com/avatars/usr_2/1-me%20.png"
    assert s3_assets.key_from_ref(url) == "avatars/usr_2/1-me .png"


def test_presigned_upload_for_own_folder(client, make_session, monkeypatch):
    user, h = make_session("MENTEE")
    monkeypatch.setattr(
        s3_assets,
        "presign_put_object",
        lambda *, key, content_type: {"bucket": "b", "key": key, "url": f"https://signed/{key}"},
    )

    r = client.post(
        "/api/upload",
        json={"fileName": "resume.pdf", "fileType": "resume", "fileSize": 2048, "contentType": "application/pdf"},
        headers=h,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["fileKey"].startswith(f"resumes/{user['id']}/")
    assert body["uploadUrl"] == f"https://signed/{body['fileKey']}"

    bad = client.post("/api/upload", json={"fileName": "resume.exe", "fileType": "resume", "fileSize": 1}, headers=h)
    assert bad.status_code == 400


def test_download_is_owner_or_admin_only(client, make_session, monkeypatch):
    owner, oh = make_session("MENTEE")
    _, other = make_session("MENTOR")
    _, ah = make_session("ADMIN")
    monkeypatch.setattr(s3_assets, "presign_get_object", lambda *, key: f"https://signed/{key}")
    key = f"resumes/{owner['id']}/1-cv.pdf"

    assert client.get(f"/api/download?key={key}", headers=oh).status_code == 200
    assert client.get(f"/api/download?key={key}", headers=ah).status_code == 200
    denied = client.get(f"/api/download?key={key}", headers=other)
    assert denied.status_code == 403
    assert denied.json()["error"] == "Access denied"

    placeholder = client.get("/api/download?key=https://example.com", headers=oh)
    assert placeholder.status_code == 404
    assert placeholder.json()["error"] == "No file uploaded yet"
