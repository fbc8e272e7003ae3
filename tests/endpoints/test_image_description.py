import pytest

from tests.helpers.asserts import api_call, api_data, assert_error


@pytest.fixture
def question(client, user_headers, question_payload):
    return api_data(client, "POST", "/questions/", headers=user_headers, json=question_payload())


class TestImageDescriptionEndpoints:
    def test_crud(self, client, user_headers, question):
        created = client.post("/image-descriptions/", headers=user_headers, json={
            "question_id": question["id"],
            "description": "Deep transgastric view of the aortic valve",
            "modality": "transesophageal",
            "echo_view": "Deep TG",
            "usage_type": "explanation",
        })
        assert created.status_code == 201, created.text
        description = created.json()["data"]
        assert description["image_type"] == "still"
        assert description["created_by"] is not None

        path = f"/image-descriptions/{description['id']}"
        assert api_data(client, "GET", path, headers=user_headers)["echo_view"] == "Deep TG"

        updated = api_data(client, "PUT", path, headers=user_headers, json={"image_type": "cine"})
        assert updated["image_type"] == "cine"
        assert updated["description"] == "Deep transgastric view of the aortic valve"

        api_call(client, "DELETE", path, headers=user_headers)
        assert_error(client.get(path, headers=user_headers), 404, "Image description not found")
        assert_error(client.delete(path, headers=user_headers), 404)

    def test_filters(self, client, user_headers, question):
        for usage, view in (("question", "ME 4C"), ("explanation", "ME LAX"), ("question", "ME LAX")):
            api_call(client, "POST", "/image-descriptions/", headers=user_headers, json={
                "question_id": question["id"], "description": view, "usage_type": usage, "echo_view": view,
            })

        by_view = api_data(client, "GET", "/image-descriptions/?echo_view=ME LAX", headers=user_headers)
        assert len(by_view) == 2

        question_path = f"/image-descriptions/question/{question['id']}"
        assert len(api_data(client, "GET", question_path, headers=user_headers)) == 3
        explanation = api_data(client, "GET", f"{question_path}?usage_type=explanation", headers=user_headers)
        assert [d["echo_view"] for d in explanation] == ["ME LAX"]

        deleted = api_data(client, "DELETE", question_path, headers=user_headers)
        assert deleted == {"deleted": 3}
        assert api_data(client, "GET", question_path, headers=user_headers) == []

    def test_validation(self, client, user_headers, question):
        assert_error(client.post("/image-descriptions/", headers=user_headers,
                                 json={"question_id": 9999, "description": "x"}), 404, "Question not found")
        assert_error(client.post("/image-descriptions/", headers=user_headers,
                                 json={"question_id": question["id"], "modality": "mri"}), 422)

    def test_echo_views_are_distinct_and_sorted(self, client, user_headers, question):
        for view in ("ME LAX", "ME 4C", "ME LAX", None):
            api_call(client, "POST", "/image-descriptions/", headers=user_headers, json={
                "question_id": question["id"], "description": "still", "echo_view": view,
            })
        assert api_data(client, "GET", "/image-descriptions/echo-views", headers=user_headers) == ["ME 4C", "ME LAX"]


class TestImageDescriptionOwnership:
    def test_only_the_question_owner_or_admin_may_change_image_needs(
        self, client, user_headers, user_factory, admin_headers, question
    ):
        _, stranger = user_factory()
        need = api_data(client, "POST", "/image-descriptions/", headers=user_headers, json={
            "question_id": question["id"], "description": "ME AV SAX still",
        })
        path = f"/image-descriptions/{need['id']}"
        question_path = f"/image-descriptions/question/{question['id']}"

        assert_error(client.put(path, headers=stranger, json={"description": "x"}), 403,
                     "You can only change image descriptions of questions you uploaded.")
        assert_error(client.delete(path, headers=stranger), 403)
        assert_error(client.delete(question_path, headers=stranger), 403)
        assert_error(client.post("/image-descriptions/", headers=stranger,
                                 json={"question_id": question["id"], "description": "extra"}), 403)

        detail = api_data(client, "GET", f"/questions/{question['id']}", headers=user_headers)
        assert detail["images_fulfilled"] is False
        assert len(detail["image_descriptions"]) == 1

        updated = api_data(client, "PUT", path, headers=admin_headers, json={"echo_view": "ME AV SAX"})
        assert updated["echo_view"] == "ME AV SAX"
        assert api_data(client, "DELETE", question_path, headers=user_headers) == {"deleted": 1}
