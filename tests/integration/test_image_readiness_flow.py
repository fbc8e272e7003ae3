from tests.helpers.asserts import api_call, api_data


def test_returned_question_becomes_reviewable_once_its_image_is_linked(client, user_headers, reviewer_headers, question_payload, png_bytes):
    """
    A question imported with an image need waits as ``returned``; linking a
    matching image fulfils it, and a reviewer reopening it puts it in the queue.
    """
    question = api_data(client, "POST", "/questions/", headers=user_headers, json=question_payload(
        image_descriptions=[{"description": "ME AV SAX still", "usage_type": "question"}],
    ))
    assert question["review_status"] == "returned"
    assert question["review_notes"]

    # wrong usage role does not fulfil the need
    image = client.post(
        "/images/upload", headers=user_headers, files={"file": ("avsax.png", png_bytes, "image/png")},
    ).json()["data"]
    link_path = f"/images/{image['id']}/associate/{question['id']}"
    api_call(client, "POST", link_path, headers=user_headers, json={"usage_type": "explanation"})
    detail = api_data(client, "GET", f"/questions/{question['id']}", headers=user_headers)
    assert detail["images_fulfilled"] is False

    api_call(client, "PUT", f"/images/{image['id']}/usage/{question['id']}", headers=user_headers,
             json={"usage_type": "question"})
    detail = api_data(client, "GET", f"/questions/{question['id']}", headers=user_headers)
    assert detail["images_fulfilled"] is True
    # the stored status is not advanced automatically
    assert detail["review_status"] == "returned"
    assert detail["ready_for_review"] is False
    assert api_data(client, "GET", "/questions/review/pending", headers=reviewer_headers) == []

    returned = api_data(client, "GET", "/questions/my-returned", headers=user_headers)
    assert returned[0]["images_fulfilled"] is True

    api_call(client, "POST", f"/questions/review/{question['id']}", headers=reviewer_headers, json={"status": "pending"})
    queue = api_data(client, "GET", "/questions/review/pending", headers=reviewer_headers)
    assert [q["id"] for q in queue] == [question["id"]]

    api_call(client, "POST", f"/questions/review/{question['id']}", headers=reviewer_headers,
             json={"status": "approved", "difficulty_rating": 3})
    approved = api_data(client, "GET", "/questions/review/status/approved", headers=user_headers)
    assert [q["id"] for q in approved] == [question["id"]]


def test_partially_fulfilled_question_stays_out_of_the_queue(client, user_headers, reviewer_headers, question_payload, png_bytes):
    question = api_data(client, "POST", "/questions/", headers=user_headers, json=question_payload(
        image_descriptions=[
            {"description": "stem image", "usage_type": "question"},
            {"description": "answer image", "usage_type": "explanation"},
        ],
    ))
    image = client.post(
        "/images/upload", headers=user_headers, files={"file": ("stem.png", png_bytes, "image/png")},
    ).json()["data"]
    api_call(client, "POST", f"/images/{image['id']}/associate/{question['id']}", headers=user_headers,
             json={"usage_type": "question"})
    api_call(client, "POST", f"/questions/review/{question['id']}", headers=reviewer_headers, json={"status": "pending"})

    assert api_data(client, "GET", "/questions/review/pending", headers=reviewer_headers) == []
    # the status listing only hides questions with no linked images at all
    pending = api_data(client, "GET", "/questions/review/status/pending", headers=reviewer_headers)
    assert [q["id"] for q in pending] == [question["id"]]
