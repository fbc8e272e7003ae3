import os

import pytest

from app.core.config import settings
from tests.helpers.asserts import api_call, api_data, assert_error


def upload(client, headers, content, filename="echo.png", mime="image/png", **form):
    return client.post("/images/upload", headers=headers, files={"file": (filename, content, mime)}, data=form)


@pytest.fixture
def uploaded_image(client, user_headers, png_bytes):
    response = upload(client, user_headers, png_bytes, tags="mitral, tee", description="ME 4C still")
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestImageUpload:
    def test_upload_stores_locally_without_object_storage(self, uploaded_image, png_bytes):
        assert uploaded_image["filename"].startswith("toe_")
        assert uploaded_image["file_size"] == len(png_bytes)
        assert uploaded_image["image_type"] == "still"
        assert uploaded_image["tags"] == ["mitral", "tee"]
        assert uploaded_image["license"] == "user-contributed"
        assert uploaded_image["license_info"]["requires_attribution"] is False
        assert uploaded_image["review_status"] == "pending"
        assert os.path.exists(uploaded_image["file_path"])

    def test_local_files_are_served_by_name(self, client, uploaded_image, png_bytes):
        response = client.get(f"/images/serve/{uploaded_image['filename']}")
        assert response.status_code == 200
        assert response.content == png_bytes

        assert_error(client.get("/images/serve/toe_missing.png"), 404, "File not found")
        assert_error(client.get("/images/serve/..%2F..%2Fconftest.py"), 404)

    def test_video_defaults_to_cine(self, client, user_headers):
        data = upload(client, user_headers, b"\x00\x00\x00\x18ftypmp42", filename="loop.mp4", mime="video/mp4").json()["data"]
        assert data["image_type"] == "cine"

    def test_rejects_other_mime_types_and_empty_files(self, client, user_headers):
        assert_error(upload(client, user_headers, b"%PDF-1.4", filename="a.pdf", mime="application/pdf"), 400)
        assert_error(upload(client, user_headers, b""), 400)

    def test_rejects_oversized_files(self, client, user_headers, monkeypatch):
        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 8)
        assert_error(upload(client, user_headers, b"0123456789"), 413)

    def test_url_upload_requires_http(self, client, user_headers):
        response = client.post("/images/upload-url", headers=user_headers, json={"url": "ftp://example.org/a.png"})
        assert_error(response, 400, "URL must be http or https")


class TestImageCatalogue:
    def test_list_and_filter_by_tags(self, client, user_headers, uploaded_image, png_bytes):
        upload(client, user_headers, png_bytes, tags="aortic")

        page = api_data(client, "GET", "/images/", headers=user_headers)
        assert page["pagination"]["total"] == 2

        mitral = api_data(client, "GET", "/images/?tags=mitral", headers=user_headers)
        assert [i["id"] for i in mitral["items"]] == [uploaded_image["id"]]

        none = api_data(client, "GET", "/images/?image_type=cine", headers=user_headers)
        assert none["items"] == []

    def test_get_update_delete(self, client, user_headers, user_factory, uploaded_image):
        path = f"/images/{uploaded_image['id']}"
        assert api_data(client, "GET", path, headers=user_headers)["id"] == uploaded_image["id"]

        _, stranger = user_factory()
        assert_error(client.put(path, headers=stranger, json={"description": "hijack"}), 403)
        updated = api_data(client, "PUT", path, headers=user_headers, json={"license": "cc-by-4.0", "tags": "lv,rv"})
        assert updated["license_info"]["name"] == "Creative Commons Attribution 4.0"
        assert updated["tags"] == ["lv", "rv"]

        assert_error(client.delete(path, headers=stranger), 403)
        api_call(client, "DELETE", path, headers=user_headers)
        assert not os.path.exists(uploaded_image["file_path"])
        assert_error(client.get(path, headers=user_headers), 404)


class TestImageAssociation:
    def test_associate_update_usage_and_remove(self, client, user_headers, uploaded_image, question_payload):
        question = api_data(client, "POST", "/questions/", headers=user_headers, json=question_payload())
        link_path = f"/images/{uploaded_image['id']}/associate/{question['id']}"

        link = api_data(client, "POST", link_path, headers=user_headers, json={"display_order": 2, "usage_type": "question"})
        assert link["display_order"] == 2

        # associating again updates the existing link
        again = api_data(client, "POST", link_path, headers=user_headers, json={"display_order": 3, "usage_type": "question"})
        assert again["id"] == link["id"]
        assert again["display_order"] == 3

        usage_path = f"/images/{uploaded_image['id']}/usage/{question['id']}"
        assert api_data(client, "PUT", usage_path, headers=user_headers, json={"usage_type": "explanation"})["usage_type"] == "explanation"
        assert_error(client.put(usage_path, headers=user_headers, json={"usage_type": "thumbnail"}), 400)

        images = api_data(client, "GET", f"/questions/{question['id']}/images", headers=user_headers)
        assert [(i["id"], i["usage_type"]) for i in images] == [(uploaded_image["id"], "explanation")]
        linked = api_data(client, "GET", f"/images/{uploaded_image['id']}/questions", headers=user_headers)
        assert [q["id"] for q in linked] == [question["id"]]

        api_call(client, "DELETE", link_path, headers=user_headers)
        assert_error(client.delete(link_path, headers=user_headers), 404)
        assert_error(client.put(usage_path, headers=user_headers, json={"usage_type": "question"}), 404)

    def test_associate_unknown_question(self, client, user_headers, uploaded_image):
        assert_error(client.post(f"/images/{uploaded_image['id']}/associate/9999", headers=user_headers, json={}), 404)


class TestImageReview:
    def test_next_for_review_and_submit(self, client, user_headers, reviewer_headers, uploaded_image):
        assert_error(client.get("/images/next-for-review", headers=user_headers), 403)

        data = api_data(client, "GET", "/images/next-for-review", headers=reviewer_headers)
        assert data["image"]["id"] == uploaded_image["id"]
        assert data["stats"] == {"total": 1, "reviewed": 0, "remaining": 1}

        review_path = f"/images/{uploaded_image['id']}/review"
        assert_error(client.post(review_path, headers=reviewer_headers, json={"rating": 11, "status": "approved"}), 400)
        reviewed = api_data(client, "POST", review_path, headers=reviewer_headers, json={"rating": 8, "status": "approved"})
        assert reviewed["review_status"] == "approved"
        assert reviewed["review_rating"] == 8

        assert_error(client.post(review_path, headers=reviewer_headers, json={"rating": 3, "status": "rejected"}), 404,
                     "Image not found or already reviewed")

        empty = api_data(client, "GET", "/images/next-for-review", headers=reviewer_headers)
        assert empty["image"] is None
        assert empty["stats"] == {"total": 1, "reviewed": 1, "remaining": 0}


class TestContributorQuota:
    def test_contributor_limit_counts_images_and_descriptions(self, client, contributor, png_bytes, question_payload, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_CONTRIBUTOR_LIMIT", 2)
        _, headers = contributor

        assert upload(client, headers, png_bytes).status_code == 201
        question = api_data(client, "POST", "/questions/", headers=headers, json=question_payload())
        api_call(client, "POST", "/image-descriptions/", headers=headers,
                 json={"question_id": question["id"], "description": "TG SAX still"})

        stats = api_data(client, "GET", "/images/user/stats", headers=headers)["stats"]
        assert stats == {
            "images_uploaded": 1, "descriptions_created": 1, "total_contributions": 2,
            "limit": 2, "remaining": 0, "is_limited": True, "at_limit": True,
        }

        error = assert_error(upload(client, headers, png_bytes), 403, "Image contributor limit reached")
        assert error["details"] == {"count": 2, "limit": 2, "requested": 1}
        assert_error(client.post("/image-descriptions/", headers=headers,
                                 json={"question_id": question["id"], "description": "one more"}), 403)

    def test_regular_users_are_unlimited(self, client, user_headers):
        stats = api_data(client, "GET", "/images/user/stats", headers=user_headers)["stats"]
        assert stats["is_limited"] is False
        assert stats["limit"] is None

    def test_question_cannot_declare_more_images_than_remain(self, client, contributor, question_payload, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_CONTRIBUTOR_LIMIT", 3)
        _, headers = contributor
        needs = [{"description": f"view {n}", "usage_type": "question"} for n in range(4)]

        response = client.post("/questions/", headers=headers, json=question_payload(image_descriptions=needs))
        error = assert_error(response, 403, "Image contributor limit exceeded")
        assert error["details"] == {"count": 0, "limit": 3, "requested": 4}
        assert api_data(client, "GET", "/questions/my-questions", headers=headers) == []

        api_call(client, "POST", "/questions/", headers=headers, json=question_payload(image_descriptions=needs[:3]))
        stats = api_data(client, "GET", "/images/user/stats", headers=headers)["stats"]
        assert stats["total_contributions"] == 3

    def test_csv_image_rows_count_against_the_quota(self, client, contributor, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_CONTRIBUTOR_LIMIT", 2)
        _, headers = contributor
        header = (
            "question,choice_a,choice_b,choice_c,choice_d,choice_e,choice_f,choice_g,correct_answer,"
            "explanation,source_folder,image_description,image_modality,image_view,image_usage,image_type\n"
        )
        rows = "".join(
            f"Stem {n},MR,TR,,,,,,A,,ch4,Jet {n},transesophageal,ME LAX,question,cine\n" for n in range(3)
        )
        response = client.post(
            "/questions/upload", headers=headers, files={"file": ("ch4.csv", (header + rows).encode("utf-8"), "text/csv")}
        )

        error = assert_error(response, 403, "Image contributor limit exceeded")
        assert error["details"]["requested"] == 3
        assert api_data(client, "GET", "/questions/batches", headers=headers) == []
        assert api_data(client, "GET", "/images/user/stats", headers=headers)["stats"]["total_contributions"] == 0
