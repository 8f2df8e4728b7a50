JOB = {"title": "Engineer", "company": "Acme", "location": "Remote", "description": "Build", "skills": ["python"]}


def test_posts_are_owned_by_the_session_user(signup) -> None:
    ada, ada_user = signup("ada")
    grace, _ = signup("grace")

    created = ada.post("/api/posts", json={"content": "hello", "userId": 999, "originalPostId": 5})
    assert created.status_code == 201
    post = created.json()
    assert post["userId"] == ada_user["id"]
    assert post["kind"] == "original"

    forbidden = grace.patch(f"/api/posts/{post['id']}", json={"content": "mine"})
    assert forbidden.status_code == 403
    assert ada.patch(f"/api/posts/{post['id']}", json={"content": "edited"}).json()["content"] == "edited"


def test_likes_comments_and_reposts_show_up_in_the_feed(signup) -> None:
    ada, _ = signup("ada")
    grace, grace_user = signup("grace")
    post_id = ada.post("/api/posts", json={"content": "hello"}).json()["id"]

    assert grace.post(f"/api/posts/{post_id}/like").status_code == 201
    assert grace.post(f"/api/posts/{post_id}/like").status_code == 201
    assert grace.post(f"/api/posts/{post_id}/comments", json={"content": "nice"}).status_code == 201
    repost = grace.post(f"/api/posts/{post_id}/repost")
    assert repost.status_code == 201
    assert repost.json()["kind"] == "repost"
    assert repost.json()["originalPostId"] == post_id
    assert grace.post(f"/api/posts/{post_id}/repost").status_code == 409

    detail = ada.get(f"/api/posts/{post_id}").json()
    assert detail["likeCount"] == 1
    assert detail["repostCount"] == 1
    assert detail["comments"][0]["user"]["id"] == grace_user["id"]

    feed = ada.get("/api/posts").json()
    assert [item["post"]["kind"] for item in feed] == ["repost", "original"]

    assert grace.delete(f"/api/posts/{post_id}/like").status_code == 204
    assert grace.delete(f"/api/posts/{post_id}/like").status_code == 404


def test_job_board_flow(signup) -> None:
    boss, boss_user = signup("boss", is_recruiter=True)
    ada, ada_user = signup("ada")

    assert ada.post("/api/jobs", json=JOB).status_code == 403
    job = boss.post("/api/jobs", json=JOB).json()
    assert job["userId"] == boss_user["id"]
    assert job["isArchived"] is False

    applied = ada.post(f"/api/jobs/{job['id']}/apply", json={"note": "hire me"})
    assert applied.status_code == 201
    application = applied.json()
    assert application["status"] == "applied"
    assert boss.post(f"/api/jobs/{job['id']}/apply").status_code == 403

    assert ada.get(f"/api/jobs/{job['id']}/applications").status_code == 403
    applicants = boss.get(f"/api/jobs/{job['id']}/applications").json()
    assert applicants[0]["applicant"]["id"] == ada_user["id"]

    skipped = boss.patch(f"/api/applications/{application['id']}", json={"status": "hired"})
    assert skipped.status_code == 409
    moved = boss.patch(f"/api/applications/{application['id']}", json={"status": "shortlisted"})
    assert moved.json()["status"] == "shortlisted"
    invalid = boss.patch(f"/api/applications/{application['id']}", json={"status": "ghosted"})
    assert invalid.status_code == 400
    assert invalid.json()["field"] == "status"

    mine = ada.get("/api/applications").json()
    assert mine[0]["job"]["id"] == job["id"]
    assert boss.get("/api/recruiter/jobs").json()[0]["applicantCount"] == 1


def test_archiving_hides_a_job_from_the_board(signup) -> None:
    boss, _ = signup("boss", is_recruiter=True)
    ada, _ = signup("ada")
    job_id = boss.post("/api/jobs", json=JOB).json()["id"]

    assert boss.post(f"/api/jobs/{job_id}/archive").json()["isArchived"] is True
    assert boss.post(f"/api/jobs/{job_id}/archive").status_code == 409
    assert ada.get("/api/jobs").json() == []
    assert [row["id"] for row in ada.get("/api/jobs", params={"includeArchived": "true"}).json()] == [job_id]

    refused = ada.post(f"/api/jobs/{job_id}/apply")
    assert refused.status_code == 400
    assert refused.json()["field"] == "jobId"


def test_saved_jobs(signup) -> None:
    boss, _ = signup("boss", is_recruiter=True)
    ada, ada_user = signup("ada")
    job_id = boss.post("/api/jobs", json=JOB).json()["id"]

    assert ada.get(f"/api/jobs/{job_id}/saved").json() == {"saved": False}
    assert ada.post(f"/api/jobs/{job_id}/save").status_code == 201
    assert ada.post(f"/api/jobs/{job_id}/save").status_code == 201
    assert ada.get(f"/api/jobs/{job_id}/saved").json() == {"saved": True}
    assert [row["id"] for row in ada.get(f"/api/users/{ada_user['id']}/saved-jobs").json()] == [job_id]
    assert boss.get(f"/api/users/{ada_user['id']}/saved-jobs").status_code == 403

    assert ada.delete(f"/api/jobs/{job_id}/save").status_code == 204
    assert ada.delete(f"/api/jobs/{job_id}/save").status_code == 404


def test_communities_track_membership(signup) -> None:
    ada, ada_user = signup("ada")
    grace, grace_user = signup("grace")

    community = ada.post(
        "/api/communities",
        json={"name": "Makers", "description": "We make", "createdBy": grace_user["id"]},
    ).json()
    assert community["createdBy"] == ada_user["id"]
    assert community["memberCount"] == 1

    assert grace.post(f"/api/communities/{community['id']}/join").status_code == 204
    assert grace.post(f"/api/communities/{community['id']}/join").status_code == 409
    assert grace.get(f"/api/communities/{community['id']}").json()["memberCount"] == 2
    members = grace.get(f"/api/communities/{community['id']}/members").json()
    assert [row["member"]["role"] for row in members] == ["admin", "member"]

    left = grace.delete(f"/api/communities/{community['id']}/leave")
    assert left.status_code == 200
    assert left.json() == {"message": "Successfully left community"}
    assert grace.post(f"/api/communities/{community['id']}/leave").status_code == 405
    assert grace.get(f"/api/communities/{community['id']}").json()["memberCount"] == 1

    private = ada.post(
        "/api/communities",
        json={"name": "Inner", "description": "Invite only", "inviteOnly": True},
    ).json()
    assert grace.post(f"/api/communities/{private['id']}/join").status_code == 403


def test_connections_and_messages(signup) -> None:
    ada, ada_user = signup("ada")
    grace, grace_user = signup("grace")

    self_request = ada.post("/api/connections", json={"receiverId": ada_user["id"]})
    assert self_request.status_code == 400
    connection = ada.post("/api/connections", json={"receiverId": grace_user["id"]}).json()
    assert connection["status"] == "pending"
    assert grace.post("/api/connections", json={"receiverId": ada_user["id"]}).status_code == 409

    assert ada.post(f"/api/connections/{connection['id']}/accept").status_code == 403
    assert grace.post(f"/api/connections/{connection['id']}/accept").json()["status"] == "accepted"
    assert [row["user"]["username"] for row in ada.get("/api/connections").json()] == ["grace"]

    sent = ada.post("/api/messages", json={"receiverId": grace_user["id"], "content": "hi"})
    assert sent.status_code == 201
    inbox = grace.get("/api/messages").json()
    assert inbox[0]["sender"]["id"] == ada_user["id"]
    assert inbox[0]["message"]["isRead"] is False
    assert grace.post(f"/api/messages/{ada_user['id']}/read").json() == {"updated": 1}
    assert [row["content"] for row in ada.get(f"/api/messages/{grace_user['id']}").json()] == ["hi"]


def test_companies_belong_to_their_creator(signup) -> None:
    boss, boss_user = signup("boss", is_recruiter=True)
    rival, _ = signup("rival", is_recruiter=True)

    company = boss.post("/api/companies", json={"name": "Acme", "website": "https://acme.test"}).json()
    assert company["ownerId"] == boss_user["id"]
    assert rival.patch(f"/api/companies/{company['id']}", json={"name": "Mine"}).status_code == 403
    assert boss.patch(f"/api/companies/{company['id']}", json={"size": "10-50"}).json()["size"] == "10-50"

    boss.post("/api/jobs", json=JOB)
    assert len(rival.get(f"/api/companies/{company['id']}/jobs").json()) == 1
    assert [row["id"] for row in rival.get("/api/companies", params={"ownerId": boss_user["id"]}).json()] == [
        company["id"]
    ]


def test_profile_updates_and_stats(signup) -> None:
    ada, ada_user = signup("ada")
    grace, _ = signup("grace")

    updated = ada.patch(
        f"/api/users/{ada_user['id']}",
        json={"title": "Engineer", "privacySettings": {"profileVisibility": "connections"}},
    )
    assert updated.status_code == 200
    assert updated.json()["privacySettings"]["profileVisibility"] == "connections"
    assert grace.patch(f"/api/users/{ada_user['id']}", json={"title": "Hacked"}).status_code == 403

    nulled = ada.patch(f"/api/users/{ada_user['id']}", json={"name": None})
    assert nulled.status_code == 400
    assert nulled.json()["field"] == "name"

    stats = grace.get(f"/api/users/{ada_user['id']}/stats").json()
    assert stats["profileStrength"] == 40
    assert [row["username"] for row in grace.get("/api/users").json()] == ["ada"]
