JOB = {
    "title": "Backend Engineer",
    "company": "Acme",
    "location": "Berlin",
    "description": "APIs and data",
    "skills": ["python", "sql"],
    "jobType": "full-time",
}


def test_candidate_is_hired_and_job_is_archived(signup, new_client) -> None:
    boss, boss_user = signup("boss", is_recruiter=True)
    ada, ada_user = signup("ada")
    grace, _ = signup("grace")

    company = boss.post("/api/companies", json={"name": "Acme", "industry": "Software"}).json()
    job = boss.post("/api/jobs", json=JOB).json()
    assert job["jobType"] == "full-time"
    assert [row["id"] for row in ada.get(f"/api/companies/{company['id']}/jobs").json()] == [job["id"]]

    ada.post(f"/api/jobs/{job['id']}/save")
    application = ada.post(f"/api/jobs/{job['id']}/apply", json={"note": "Five years of Python"}).json()
    grace_application = grace.post(f"/api/jobs/{job['id']}/apply").json()

    for status in ("shortlisted", "interview", "hired"):
        response = boss.patch(f"/api/applications/{application['id']}", json={"status": status})
        assert response.status_code == 200, response.text
    assert boss.patch(f"/api/applications/{grace_application['id']}", json={"status": "rejected"}).status_code == 200

    statuses = {
        row["applicant"]["username"]: row["application"]["status"]
        for row in boss.get("/api/recruiter/applications").json()
    }
    assert statuses == {"ada": "hired", "grace": "rejected"}

    boss.post(f"/api/jobs/{job['id']}/archive")
    assert ada.get("/api/jobs").json() == []
    assert ada.get(f"/api/companies/{company['id']}/jobs").json() == []
    # history stays visible to the candidate
    mine = ada.get(f"/api/users/{ada_user['id']}/applications").json()
    assert mine[0]["application"]["status"] == "hired"
    assert mine[0]["job"]["isArchived"] is True
    assert [row["id"] for row in ada.get(f"/api/users/{ada_user['id']}/saved-jobs").json()] == [job["id"]]

    jobs_by_boss = ada.get(f"/api/users/{boss_user['id']}/jobs").json()
    assert [row["id"] for row in jobs_by_boss] == [job["id"]]

    admin = new_client()
    admin.post("/api/admin/login", json={"username": "boss", "password": "secret123"})
    analytics = admin.get("/api/admin/analytics").json()
    assert analytics["jobTotal"] == 1
    assert analytics["activeJobTotal"] == 0
    assert analytics["applicationTotal"] == 2
    assert admin.get("/api/admin/jobs").json()[0]["applicantCount"] == 2


def test_admin_removes_a_user_and_their_footprint(signup, new_client) -> None:
    signup("boss", is_recruiter=True)
    ada, ada_user = signup("ada")
    grace, grace_user = signup("grace")

    post_id = ada.post("/api/posts", json={"content": "hello"}).json()["id"]
    grace.post(f"/api/posts/{post_id}/like")
    community = grace.post("/api/communities", json={"name": "Readers", "description": "Books"}).json()
    ada.post(f"/api/communities/{community['id']}/join")
    ada.post("/api/connections", json={"receiverId": grace_user["id"]})

    admin = new_client()
    admin.post("/api/admin/login", json={"username": "boss", "password": "secret123"})
    assert admin.delete(f"/api/admin/users/{ada_user['id']}").status_code == 204

    assert grace.get(f"/api/users/{ada_user['id']}").status_code == 404
    assert grace.get(f"/api/posts/{post_id}").status_code == 404
    assert grace.get(f"/api/communities/{community['id']}").json()["memberCount"] == 1
    assert grace.get("/api/connections/pending").json() == []
    # the deleted account's cookie no longer resolves to a session
    assert ada.get("/api/user").status_code == 401
