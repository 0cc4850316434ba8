import pytest


@pytest.fixture
def course(client, admin_headers):
    res = client.post("/api/courses", json={
        "title": "Web Development",
        "description": "HTML to React",
        "subject": "Programming",
        "level": "Intermediate",
    }, headers=admin_headers)
    assert res.status_code == 201
    return res.json()


def create_module(client, headers, payload):
    res = client.post("/api/modules", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()

# ==================== AUTH ====================

def test_requests_without_valid_token_are_rejected(client):
    assert client.get("/api/courses").status_code == 401
    assert client.get("/api/courses", headers={"x-auth-token": "garbage"}).status_code == 401


def test_bearer_header_is_accepted(client, make_headers):
    token = make_headers()["x-auth-token"]
    res = client.get("/api/courses", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200


def test_course_mutations_need_admin(client, student_headers):
    res = client.post("/api/courses", json={"title": "t", "description": "d", "subject": "s"}, headers=student_headers)
    assert res.status_code == 403

# ==================== COURSES ====================

def test_create_course_defaults(course):
    assert course["course_id"].startswith("COURSE_")
    assert course["grade"] == "12"
    assert course["total_modules"] == 0
    assert course["enrolled_count"] == 0


def test_create_course_missing_fields(client, admin_headers):
    res = client.post("/api/courses", json={"title": "Only title"}, headers=admin_headers)
    assert res.status_code == 400
    fields = {e["field"] for e in res.json()["errors"]}
    assert {"description", "subject"} <= fields


def test_update_course(client, course, admin_headers):
    res = client.put(f"/api/courses/{course['course_id']}", json={"is_popular": True}, headers=admin_headers)
    assert res.json()["is_popular"] is True

    popular = client.get("/api/courses/popular", headers=admin_headers).json()
    assert [c["course_id"] for c in popular] == [course["course_id"]]


def test_get_course_includes_modules_and_enrollment(client, course, admin_headers, student_headers, module_payload):
    cid = course["course_id"]
    create_module(client, admin_headers, module_payload(cid, "Second"))
    create_module(client, admin_headers, module_payload(cid, "First", order=1))

    res = client.get(f"/api/courses/{cid}", headers=student_headers).json()
    assert [m["title"] for m in res["modules"]] == ["First", "Second"]
    assert res["course"]["total_modules"] == 2
    assert res["enrollment"] is None

    client.post(f"/api/courses/{cid}/enroll", headers=student_headers)
    res = client.get(f"/api/courses/{cid}", headers=student_headers).json()
    assert res["enrollment"]["status"] == "not-started"

    assert client.get("/api/courses/COURSE_MISSING", headers=student_headers).status_code == 404


def test_delete_course_cascades(client, course, admin_headers, module_payload):
    cid = course["course_id"]
    module = create_module(client, admin_headers, module_payload(cid))
    client.post("/api/materials", json={
        "title": "Notes", "description": "d", "content": "c", "subject": "s", "module_id": module["module_id"],
    }, headers=admin_headers)

    res = client.delete(f"/api/courses/{cid}", headers=admin_headers)

    assert res.status_code == 200
    assert res.json()["modules_deleted"] == 1
    assert res.json()["materials_deleted"] == 1
    assert client.get(f"/api/modules/{module['module_id']}", headers=admin_headers).status_code == 404

# ==================== ENROLLMENT ====================

def test_enroll_twice_is_conflict(client, course, student_headers, admin_headers):
    cid = course["course_id"]
    assert client.post(f"/api/courses/{cid}/enroll", headers=student_headers).status_code == 200

    res = client.post(f"/api/courses/{cid}/enroll", headers=student_headers)
    assert res.status_code == 400
    assert "already enrolled" in res.json()["detail"].lower()

    assert client.get(f"/api/courses/{cid}", headers=admin_headers).json()["course"]["enrolled_count"] == 1


def test_enroll_in_missing_course(client, student_headers):
    assert client.post("/api/courses/COURSE_MISSING/enroll", headers=student_headers).status_code == 404


def test_my_courses(client, course, student_headers):
    client.post(f"/api/courses/{course['course_id']}/enroll", headers=student_headers)
    mine = client.get("/api/courses/user/my-courses", headers=student_headers).json()
    assert len(mine) == 1
    assert mine[0]["course"]["title"] == "Web Development"


def test_progress_update_is_recomputed(client, course, admin_headers, student_headers, module_payload):
    cid = course["course_id"]
    module = create_module(client, admin_headers, module_payload(cid, sub_modules=4))
    client.post(f"/api/courses/{cid}/enroll", headers=student_headers)
    first = module["sub_modules"][0]["sub_module_id"]

    res = client.put(f"/api/courses/{cid}/progress", json={
        "completed_sub_modules": [first],
        "progress": 100,
    }, headers=student_headers)

    assert res.status_code == 200
    assert res.json()["progress"] == 25
    assert client.get(f"/api/courses/{cid}/enrollment", headers=student_headers).json()["progress"] == 25

    assert client.get("/api/courses/COURSE_MISSING/enrollment", headers=student_headers).status_code == 404

# ==================== MODULES ====================

def test_create_module_validation(client, course, admin_headers, module_payload):
    payload = module_payload(course["course_id"])
    del payload["content"]
    assert client.post("/api/modules", json=payload, headers=admin_headers).status_code == 400

    payload = module_payload(course["course_id"], quiz={
        "title": "Q",
        "questions": [{"question": "?", "options": [{"text": "a"}, {"text": "b"}]}],
    })
    assert client.post("/api/modules", json=payload, headers=admin_headers).status_code == 400

    payload = module_payload(course["course_id"], order=0)
    assert client.post("/api/modules", json=payload, headers=admin_headers).status_code == 400


def test_create_module_in_missing_course(client, admin_headers, module_payload):
    res = client.post("/api/modules", json=module_payload("COURSE_MISSING"), headers=admin_headers)
    assert res.status_code == 404


def test_update_module_fields_and_order(client, course, admin_headers, module_payload):
    cid = course["course_id"]
    a = create_module(client, admin_headers, module_payload(cid, "A"))
    create_module(client, admin_headers, module_payload(cid, "B"))

    res = client.put(f"/api/modules/{a['module_id']}", json={"title": "A2", "order": 2}, headers=admin_headers)

    assert res.status_code == 200
    assert res.json()["title"] == "A2"
    assert res.json()["order"] == 2
    titles = [m["title"] for m in client.get(f"/api/modules/course/{cid}", headers=admin_headers).json()]
    assert titles == ["B", "A2"]

    assert client.put("/api/modules/MOD_MISSING", json={"order": 1}, headers=admin_headers).status_code == 404


def test_reorder_endpoint(client, course, admin_headers, module_payload):
    cid = course["course_id"]
    a = create_module(client, admin_headers, module_payload(cid, "A"))
    b = create_module(client, admin_headers, module_payload(cid, "B"))

    res = client.put(f"/api/modules/course/{cid}/reorder", json={"order": [b["module_id"], a["module_id"]]},
                     headers=admin_headers)
    assert [m["title"] for m in res.json()["modules"]] == ["B", "A"]

    res = client.put(f"/api/modules/course/{cid}/reorder", json={"order": [a["module_id"]]}, headers=admin_headers)
    assert res.status_code == 400


def test_delete_module_endpoint(client, course, admin_headers, module_payload):
    cid = course["course_id"]
    a = create_module(client, admin_headers, module_payload(cid, "A"))
    create_module(client, admin_headers, module_payload(cid, "B"))

    res = client.delete(f"/api/modules/{a['module_id']}", headers=admin_headers)

    assert res.json()["total_modules"] == 1
    remaining = client.get(f"/api/modules/course/{cid}", headers=admin_headers).json()
    assert [(m["title"], m["order"]) for m in remaining] == [("B", 1)]


def test_complete_and_quiz_endpoints(client, course, admin_headers, student_headers, module_payload, two_question_quiz):
    cid = course["course_id"]
    module = create_module(client, admin_headers, module_payload(cid, sub_modules=2, quiz=two_question_quiz))
    mid = module["module_id"]
    sub = module["sub_modules"][0]["sub_module_id"]
    assert module["quiz"]["total_points"] == 20

    assert client.post(f"/api/modules/{mid}/submodules/{sub}/complete", headers=student_headers).status_code == 404

    client.post(f"/api/courses/{cid}/enroll", headers=student_headers)
    res = client.post(f"/api/modules/{mid}/submodules/{sub}/complete", headers=student_headers)
    assert res.json() == {"progress": 50, "status": "in-progress", "completed_sub_modules": [sub]}

    res = client.post(f"/api/modules/{mid}/quiz/submit", json={"answers": ["4", "Jakarta"]}, headers=student_headers)
    body = res.json()
    assert (body["score"], body["max_score"], body["percentage"], body["is_passed"]) == (20, 20, 100, True)
    assert body["passing_score"] == 70
    assert len(body["results"]) == 2

    enrollment = client.get(f"/api/courses/{cid}/enrollment", headers=student_headers).json()
    assert enrollment["completed_modules"] == [mid]

# ==================== MATERIALS ====================

def test_material_lifecycle_keeps_module_list_in_sync(client, course, admin_headers, student_headers, module_payload):
    module = create_module(client, admin_headers, module_payload(course["course_id"]))
    mid = module["module_id"]

    res = client.post("/api/materials", json={
        "title": "Slides", "description": "d", "content": "c", "subject": "s", "module_id": mid, "type": "video",
    }, headers=admin_headers)
    assert res.status_code == 201
    material = res.json()
    assert material["course_id"] == course["course_id"]
    assert client.get(f"/api/modules/{mid}", headers=student_headers).json()["materials"] == [material["material_id"]]

    res = client.put(f"/api/materials/{material['material_id']}", json={"title": "Slides v2"}, headers=admin_headers)
    assert res.json()["title"] == "Slides v2"
    assert len(client.get(f"/api/materials/module/{mid}", headers=student_headers).json()) == 1
    assert len(client.get(f"/api/materials/course/{course['course_id']}", headers=student_headers).json()) == 1

    client.delete(f"/api/materials/{material['material_id']}", headers=admin_headers)
    assert client.get(f"/api/modules/{mid}", headers=student_headers).json()["materials"] == []
    assert client.get(f"/api/materials/{material['material_id']}", headers=student_headers).status_code == 404


def test_material_for_missing_module(client, admin_headers):
    res = client.post("/api/materials", json={
        "title": "t", "description": "d", "content": "c", "subject": "s", "module_id": "MOD_MISSING",
    }, headers=admin_headers)
    assert res.status_code == 404
