import uuid

import pytest


VERIFY_URL = "/api/v1/grading/verify"


def test_health_check(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_verify_returns_camel_case_result(client, auth_headers, make_material, ledger_rows) -> None:
    material = make_material(answer_key=["A", "B", "C", "D"])

    response = client.post(
        VERIFY_URL,
        json={"materialId": str(material.id), "answers": ["A", "B", "X", ""], "timeSpentSeconds": 120},
        headers=auth_headers(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["isMultiSubject"] is False
    assert body["score"] == 2
    assert body["totalQuestions"] == 4
    assert body["timeSpentSeconds"] == 120
    assert body["results"][2] == {
        "questionIndex": 2,
        "userAnswer": "X",
        "correctAnswer": "C",
        "isCorrect": False,
    }
    assert "answerKey" not in body
    assert len(ledger_rows()) == 1


def test_verify_requires_token(client, make_material) -> None:
    material = make_material(answer_key=["A"])
    response = client.post(VERIFY_URL, json={"materialId": str(material.id), "answers": ["A"]})
    assert response.status_code == 401


def test_verify_rejects_garbage_token(client, make_material) -> None:
    material = make_material(answer_key=["A"])
    response = client.post(
        VERIFY_URL,
        json={"materialId": str(material.id), "answers": ["A"]},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


def test_verify_error_mapping(client, auth_headers, make_material, ledger_rows) -> None:
    material = make_material(answer_key=["A", "B"])
    headers = auth_headers()

    missing = client.post(VERIFY_URL, json={"materialId": str(uuid.uuid4()), "answers": ["A"]}, headers=headers)
    wrong_shape = client.post(VERIFY_URL, json={"materialId": str(material.id), "answers": ["A"]}, headers=headers)

    assert missing.status_code == 404
    assert wrong_shape.status_code == 422
    assert ledger_rows() == []


def test_duplicate_attempt_returns_conflict_with_result(client, auth_headers, make_material, ledger_rows) -> None:
    material = make_material(answer_key=["A", "B"])
    user_id = uuid.uuid4()
    payload = {"materialId": str(material.id), "answers": ["A", "A"], "attemptId": "abc123"}

    first = client.post(VERIFY_URL, json=payload, headers=auth_headers(user_id=user_id))
    second = client.post(VERIFY_URL, json=payload, headers=auth_headers(user_id=user_id))

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["result"]["score"] == first.json()["score"] == 1
    assert len(ledger_rows()) == 1


def test_verify_multi_subject(client, auth_headers, make_material, multi_subject_config) -> None:
    material = make_material(subject_config=multi_subject_config)

    response = client.post(
        VERIFY_URL,
        json={
            "materialId": str(material.id),
            "isMultiSubject": True,
            "multiSubjectAnswers": {"matematica": ["A", "B"], "informatica": ["C", "D"], "fizica": ["A"]},
            "timeSpentSeconds": 600,
        },
        headers=auth_headers(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["isMultiSubject"] is True
    assert body["weightedAverage"] == pytest.approx(10.0)
    assert [item["subject"] for item in body["subjectResults"]] == ["matematica", "informatica", "fizica"]


def test_multi_subject_flag_without_answers_is_rejected(client, auth_headers, make_material) -> None:
    material = make_material(answer_key=["A"])
    response = client.post(
        VERIFY_URL,
        json={"materialId": str(material.id), "isMultiSubject": True, "answers": ["A"]},
        headers=auth_headers(),
    )
    assert response.status_code == 422


def test_student_read_has_no_answer_key(client, auth_headers, make_material) -> None:
    material = make_material(answer_key=["A", "B", "C"], oficiu=1)

    response = client.get(f"/api/v1/materials/{material.id}", headers=auth_headers("student"))

    assert response.status_code == 200
    body = response.json()
    assert "answerKey" not in body
    assert body["hasAnswerKey"] is True
    assert body["questionCount"] == 3


def test_student_read_of_multi_subject_hides_keys(client, auth_headers, make_material, multi_subject_config) -> None:
    material = make_material(subject_config=multi_subject_config)

    body = client.get(f"/api/v1/materials/{material.id}", headers=auth_headers()).json()

    assert body["isMultiSubject"] is True
    assert body["questionCount"] == 5
    for subject, summary in body["subjectConfig"].items():
        assert set(summary) == {"questionCount", "oficiu"}
    assert "answerKey" not in str(body)


def test_student_listing_has_no_answer_key(client, auth_headers, make_material, multi_subject_config) -> None:
    make_material(answer_key=["A"])
    make_material(subject_config=multi_subject_config)

    response = client.get("/api/v1/materials", headers=auth_headers())

    assert response.status_code == 200
    assert len(response.json()) == 2
    assert "answerKey" not in response.text


def test_teacher_read_includes_answer_key(client, auth_headers, make_material) -> None:
    material = make_material(answer_key=["A", "B"], oficiu=1)

    body = client.get(f"/api/v1/materials/{material.id}", headers=auth_headers("teacher")).json()

    assert body["answerKey"] == ["A", "B"]
    assert body["oficiu"] == 1


def test_question_count_accessor(client, auth_headers, make_material, multi_subject_config) -> None:
    single = make_material(answer_key=["A", "", "C"])
    multi = make_material(subject_config=multi_subject_config)
    empty = make_material()
    headers = auth_headers()

    single_body = client.get(f"/api/v1/materials/{single.id}/question-count", headers=headers).json()
    multi_body = client.get(f"/api/v1/materials/{multi.id}/question-count", headers=headers).json()
    missing = client.get(f"/api/v1/materials/{empty.id}/question-count", headers=headers)

    assert single_body == {"materialId": str(single.id), "questionCount": 3}
    assert multi_body["questionCount"] == 5
    assert missing.status_code == 404


def test_unknown_material_id(client, auth_headers) -> None:
    assert client.get(f"/api/v1/materials/{uuid.uuid4()}", headers=auth_headers()).status_code == 404
    assert client.get("/api/v1/materials/not-a-uuid", headers=auth_headers()).status_code == 400


def test_student_cannot_write_answer_key(client, auth_headers, make_material, reload_material) -> None:
    material = make_material(answer_key=["A"])

    response = client.put(
        f"/api/v1/materials/{material.id}/answer-key",
        json={"answerKey": ["B"]},
        headers=auth_headers("student"),
    )

    assert response.status_code == 403
    assert reload_material(material.id).answer_key == ["A"]


def test_teacher_writes_single_answer_key(client, auth_headers, make_material, reload_material) -> None:
    material = make_material()

    response = client.put(
        f"/api/v1/materials/{material.id}/answer-key",
        json={"answerKey": ["A", "B", "C"], "oficiu": 1},
        headers=auth_headers("teacher"),
    )

    assert response.status_code == 200
    assert response.json()["questionCount"] == 3
    stored = reload_material(material.id)
    assert stored.answer_key == ["A", "B", "C"]
    assert stored.oficiu == 1
    assert stored.subject_config is None


def test_teacher_writes_subject_config(client, auth_headers, make_material, reload_material) -> None:
    material = make_material(answer_key=["A"])

    response = client.put(
        f"/api/v1/materials/{material.id}/answer-key",
        json={
            "subjectConfig": {
                "fizica": {"questionCount": 1, "answerKey": ["D"]},
                "matematica": {"questionCount": 2, "answerKey": ["A", "B"], "oficiu": 1},
            }
        },
        headers=auth_headers("admin"),
    )

    assert response.status_code == 200
    stored = reload_material(material.id)
    assert stored.answer_key is None
    assert list(stored.subject_config) == ["matematica", "fizica"]


@pytest.mark.parametrize(
    "payload",
    [
        {"answerKey": ["A", "E"]},
        {"answerKey": []},
        {"answerKey": ["A"], "subjectConfig": {"fizica": {"questionCount": 1, "answerKey": ["A"]}}},
        {"subjectConfig": {"chimie": {"questionCount": 1, "answerKey": ["A"]}}},
    ],
    ids=["bad-letter", "empty", "both-layouts", "ineligible-subject"],
)
def test_invalid_answer_key_writes(client, auth_headers, make_material, payload) -> None:
    material = make_material()
    response = client.put(
        f"/api/v1/materials/{material.id}/answer-key", json=payload, headers=auth_headers("teacher")
    )
    assert response.status_code == 422


def test_resize_preserves_prefix(client, auth_headers, make_material) -> None:
    nine = ["A", "B", "C", "D", "A", "B", "C", "D", "A"]
    material = make_material(answer_key=nine)
    url = f"/api/v1/materials/{material.id}/answer-key/size"
    headers = auth_headers("teacher")

    client.patch(url, json={"questionCount": 5}, headers=headers)
    response = client.patch(url, json={"questionCount": 9}, headers=headers)

    assert response.status_code == 200
    assert response.json()["answerKey"] == nine[:5] + ["", "", "", ""]


def test_resize_subject(client, auth_headers, make_material, multi_subject_config) -> None:
    material = make_material(subject_config=multi_subject_config)

    response = client.patch(
        f"/api/v1/materials/{material.id}/answer-key/size",
        json={"questionCount": 3, "subject": "matematica"},
        headers=auth_headers("teacher"),
    )

    assert response.status_code == 200
    matematica = response.json()["subjectConfig"]["matematica"]
    assert matematica["questionCount"] == 3
    assert matematica["answerKey"] == ["A", "B", ""]
    assert matematica["oficiu"] == 1
    assert response.json()["questionCount"] == 6


def test_student_cannot_resize(client, auth_headers, make_material) -> None:
    material = make_material(answer_key=["A"])
    response = client.patch(
        f"/api/v1/materials/{material.id}/answer-key/size",
        json={"questionCount": 3},
        headers=auth_headers(),
    )
    assert response.status_code == 403


def test_students_only_see_their_own_submissions(client, auth_headers, make_material) -> None:
    material = make_material(answer_key=["A"])
    alice, bob = uuid.uuid4(), uuid.uuid4()
    payload = {"materialId": str(material.id), "answers": ["A"]}
    client.post(VERIFY_URL, json=payload, headers=auth_headers(user_id=alice))
    client.post(VERIFY_URL, json=payload, headers=auth_headers(user_id=bob))
    params = {"material_id": str(material.id)}

    own = client.get("/api/v1/submissions", params=params, headers=auth_headers(user_id=alice)).json()
    everyone = client.get("/api/v1/submissions", params=params, headers=auth_headers("teacher")).json()

    assert [row["userId"] for row in own] == [str(alice)]
    assert {row["userId"] for row in everyone} == {str(alice), str(bob)}


def test_submission_status(client, auth_headers, make_material) -> None:
    taken = make_material(answer_key=["A"])
    fresh = make_material(answer_key=["B"])
    user_id = uuid.uuid4()
    client.post(
        VERIFY_URL,
        json={"materialId": str(taken.id), "answers": ["B"]},
        headers=auth_headers(user_id=user_id),
    )

    response = client.get(
        "/api/v1/submissions/status",
        params=[("material_id", str(taken.id)), ("material_id", str(fresh.id))],
        headers=auth_headers(user_id=user_id),
    )

    assert response.json() == {str(taken.id): True, str(fresh.id): False}


def test_unknown_role_is_forbidden(client, auth_headers, make_material) -> None:
    material = make_material(answer_key=["A"])
    response = client.get(f"/api/v1/materials/{material.id}", headers=auth_headers("superuser"))
    assert response.status_code == 403


def test_resized_empty_material_is_not_gradable(client, auth_headers, make_material, ledger_rows) -> None:
    material = make_material()
    client.patch(
        f"/api/v1/materials/{material.id}/answer-key/size",
        json={"questionCount": 3},
        headers=auth_headers("teacher"),
    )

    view = client.get(f"/api/v1/materials/{material.id}", headers=auth_headers()).json()
    response = client.post(
        VERIFY_URL,
        json={"materialId": str(material.id), "answers": ["A", "B", "C"]},
        headers=auth_headers(),
    )

    assert view["hasAnswerKey"] is False
    assert response.status_code == 404
    assert ledger_rows() == []
