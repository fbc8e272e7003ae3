from tests.helpers.asserts import api_call, api_data, assert_error


def create_question(client, headers, payload):
    response = client.post("/questions/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestQuestionEndpoints:
    def test_create_plain_question_is_pending(self, client, user_headers, question_payload):
        question = create_question(client, user_headers, question_payload())

        assert question["review_status"] == "pending"
        assert question["review_notes"] is None
        assert question["question_number"] == f"Q{question['id']:04d}"
        assert question["exam_category"] == "echocardiography"
        assert question["ready_for_review"] is True

    def test_create_with_image_needs_is_returned(self, client, user_headers, question_payload):
        payload = question_payload(image_descriptions=[
            {"description": "Color Doppler of the MR jet", "usage_type": "question", "modality": "transesophageal"},
        ])
        question = create_question(client, user_headers, payload)

        assert question["review_status"] == "returned"
        assert question["review_notes"] == "Question needs image to be uploaded before review"
        assert len(question["image_descriptions"]) == 1
        assert question["images_fulfilled"] is False
        assert question["ready_for_review"] is False

    def test_answer_must_name_a_populated_choice(self, client, user_headers, question_payload):
        assert_error(client.post("/questions/", headers=user_headers, json=question_payload(correct_answer="E")), 422)
        assert_error(client.post("/questions/", headers=user_headers, json=question_payload(correct_answer="Z")), 422)
        assert_error(client.post("/questions/", headers=user_headers, json=question_payload(question="  ")), 422)

    def test_list_is_paginated_and_partitioned(self, client, user_headers, user_factory, question_payload):
        for i in range(3):
            create_question(client, user_headers, question_payload(question=f"Question {i}"))
        _, other_headers = user_factory(exam_category="cardiology", exam_type="other_exam")
        create_question(client, other_headers, question_payload(question="Other partition"))

        page = api_data(client, "GET", "/questions/?limit=2&offset=0", headers=user_headers)
        assert page["pagination"] == {"total": 3, "limit": 2, "offset": 0, "has_more": True}
        # highest question number first
        numbers = [q["question_number"] for q in page["items"]]
        assert numbers == sorted(numbers, reverse=True)

        rest = api_data(client, "GET", "/questions/?limit=2&offset=2", headers=user_headers)
        assert len(rest["items"]) == 1
        assert rest["pagination"]["has_more"] is False

    def test_get_update_and_delete(self, client, user_headers, question_payload):
        question = create_question(client, user_headers, question_payload())
        path = f"/questions/{question['id']}"

        detail = api_data(client, "GET", path, headers=user_headers)
        assert detail["images"] == []

        updated = api_data(client, "PUT", path, headers=user_headers, json={"explanation": "Updated"})
        assert updated["explanation"] == "Updated"
        assert_error(client.put(path, headers=user_headers, json={"correct_answer": "D"}), 400)

        deleted = api_data(client, "DELETE", path, headers=user_headers)
        assert deleted["id"] == question["id"]
        assert_error(client.get(path, headers=user_headers), 404, "Question not found")

    def test_only_owner_or_admin_may_edit(self, client, user_headers, user_factory, admin_headers, question_payload):
        question = create_question(client, user_headers, question_payload())
        _, stranger = user_factory()
        path = f"/questions/{question['id']}"

        assert_error(client.put(path, headers=stranger, json={"explanation": "mine now"}), 403)
        assert_error(client.delete(path, headers=stranger), 403)
        api_call(client, "PUT", path, headers=admin_headers, json={"explanation": "admin edit"})

    def test_delete_with_images_is_admin_only(self, client, user_headers, admin_headers, question_payload):
        payload = question_payload(image_descriptions=[{"description": "needs a still", "usage_type": "question"}])
        question = create_question(client, user_headers, payload)
        path = f"/questions/{question['id']}/with-images"

        assert_error(client.delete(path, headers=user_headers), 403)
        result = api_data(client, "DELETE", path, headers=admin_headers)
        assert result["descriptions_deleted"] == 1
        assert api_data(client, "GET", f"/image-descriptions/question/{question['id']}", headers=admin_headers) == []

    def test_my_questions_and_returned(self, client, user_headers, reviewer_headers, question_payload):
        first = create_question(client, user_headers, question_payload(question="First"))
        second = create_question(client, user_headers, question_payload(question="Second"))
        api_call(client, "POST", f"/questions/review/{second['id']}", headers=reviewer_headers,
                 json={"status": "returned", "notes": "Clarify the stem"})

        mine = api_data(client, "GET", "/questions/my-questions", headers=user_headers)
        assert {q["id"] for q in mine} == {first["id"], second["id"]}

        returned = api_data(client, "GET", "/questions/my-returned", headers=user_headers)
        assert [q["id"] for q in returned] == [second["id"]]
        assert returned[0]["review_notes"] == "Clarify the stem"
        assert returned[0]["reviewer_name"]
        assert returned[0]["images_fulfilled"] is True

    def test_unknown_question(self, client, user_headers):
        assert_error(client.get("/questions/9999", headers=user_headers), 404)
        assert_error(client.get("/questions/9999/images", headers=user_headers), 404)


CSV_HEADER = (
    "question,choice_a,choice_b,choice_c,choice_d,choice_e,choice_f,choice_g,correct_answer,"
    "explanation,source_folder,image_description,image_modality,image_view,image_usage,image_type\n"
)


class TestCsvUpload:
    def upload(self, client, headers, content, **form):
        return client.post(
            "/questions/upload",
            headers=headers,
            files={"file": ("chapter3.csv", content, "text/csv")},
            data=form,
        )

    def test_upload_creates_batch_and_questions(self, client, user_headers, admin_headers):
        content = (
            CSV_HEADER
            + "Which leaflet prolapses?,Anterior,Posterior,,,,,,B,P2 scallop,ch3,,,,,\n"
            + "Identify the jet,MR,TR,,,,,,A,,ch3,Color flow across the mitral valve,transesophageal,ME LAX,question,cine\n"
            + ",missing,question,,,,,,A,,,,,,,\n"
        ).encode("utf-8")
        response = self.upload(client, user_headers, content, isbn="978-0-00", chapter="3", starting_page="10")

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["message"] == "Successfully uploaded 2 questions (1 need images, 1 ready for review)"
        data = body["data"]
        assert data["skipped_rows"] == 1
        assert data["batch"]["question_count"] == 2
        assert data["batch"]["file_name"] == "chapter3.csv"
        assert data["batch"]["isbn"] == "978-0-00"
        assert data["batch"]["starting_page"] == 10
        assert data["batch"]["description"] == "Batch upload of 2 questions"
        assert data["batch"]["batch_name"].startswith("Upload ")
        statuses = sorted(q["review_status"] for q in data["questions"])
        assert statuses == ["pending", "returned"]

        batch_id = data["batch"]["id"]
        batches = api_data(client, "GET", "/questions/batches", headers=user_headers)
        assert batches[0]["actual_question_count"] == 2

        descriptions = api_data(client, "GET", f"/image-descriptions/?batch_id={batch_id}", headers=user_headers)
        assert len(descriptions) == 1
        assert descriptions[0]["echo_view"] == "ME LAX"
        assert descriptions[0]["image_type"] == "cine"

        detail = api_data(client, "GET", f"/questions/batches/{batch_id}", headers=admin_headers)
        assert {q["status_display"] for q in detail["questions"]} == {"Ready for Review", "Needs Rework"}

    def test_upload_without_valid_rows(self, client, user_headers):
        content = (CSV_HEADER + ",,,,,,,,,,,,,,,\n").encode("utf-8")
        assert_error(self.upload(client, user_headers, content), 400, "No valid questions found in CSV file")

    def test_batch_detail_and_delete_are_admin_only(self, client, user_headers, admin_headers):
        content = (CSV_HEADER + "Q one,a,b,,,,,,A,,,,,,,\n").encode("utf-8")
        batch_id = self.upload(client, user_headers, content).json()["data"]["batch"]["id"]

        assert_error(client.get(f"/questions/batches/{batch_id}", headers=user_headers), 403)
        assert_error(client.delete(f"/questions/batches/{batch_id}", headers=user_headers), 403)

        result = api_data(client, "DELETE", f"/questions/batches/{batch_id}", headers=admin_headers)
        assert result == {"batch_id": batch_id, "deleted_questions": 1}
        assert api_data(client, "GET", "/questions/my-questions", headers=user_headers) == []
        assert_error(client.get(f"/questions/batches/{batch_id}", headers=admin_headers), 404)
