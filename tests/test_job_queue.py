from infra.queue.job_queue import JobQueue


def test_enqueue_is_deduplicated_per_job(job_queue):
    first = job_queue.enqueue("job_1")
    second = job_queue.enqueue("job_1")
    assert first.id == second.id
    assert job_queue.counts()["waiting"] == 1


def test_claim_gives_one_lease_per_job(job_queue):
    job_queue.enqueue("job_1")

    lease = job_queue.claim("worker-a")
    assert lease is not None
    assert lease.job_id == "job_1"
    assert job_queue.claim("worker-b") is None
    assert job_queue.get("job_1").state == "active"


def test_claims_follow_enqueue_order(job_queue, clock):
    for job_id in ("job_1", "job_2", "job_3"):
        job_queue.enqueue(job_id)
        clock.advance(1)

    claimed = [job_queue.claim("w").job_id for _ in range(3)]
    assert claimed == ["job_1", "job_2", "job_3"]


def test_complete_and_fail_require_the_current_lease(job_queue):
    job_queue.enqueue("job_1")
    job_queue.enqueue("job_2")
    lease_1 = job_queue.claim("w")
    lease_2 = job_queue.claim("w")

    assert job_queue.complete(lease_1) is True
    assert job_queue.complete(lease_1) is False
    assert job_queue.fail(lease_2, "boom") is True

    assert job_queue.get("job_1").state == "completed"
    failed = job_queue.get("job_2")
    assert failed.state == "failed"
    assert failed.last_error == "boom"


def test_lease_within_ceiling_is_not_stalled(job_queue, clock):
    job_queue.enqueue("job_1")
    job_queue.claim("w")
    clock.advance(299)

    report = job_queue.recover_stalled()
    assert report.requeued == [] and report.failed == []
    assert job_queue.get("job_1").state == "active"


def test_expired_lease_is_redelivered_and_old_holder_ignored(job_queue, clock):
    job_queue.enqueue("job_1")
    stale = job_queue.claim("worker-a")
    clock.advance(301)

    report = job_queue.recover_stalled()
    assert report.requeued == ["job_1"]

    fresh = job_queue.claim("worker-b")
    assert fresh is not None and fresh.token != stale.token
    assert job_queue.complete(stale) is False
    assert job_queue.complete(fresh) is True
    assert job_queue.get("job_1").stalled_count == 1


def test_stall_cap_fails_message_permanently(session_factory, clock):
    queue = JobQueue("evaluation", lease_seconds=10, max_stalled_count=2,
                     session_factory=session_factory, clock=clock)
    queue.enqueue("job_1")

    outcomes = []
    for _ in range(3):
        assert queue.claim("w") is not None
        clock.advance(11)
        outcomes.append(queue.recover_stalled())

    assert [o.requeued for o in outcomes] == [["job_1"], ["job_1"], []]
    assert outcomes[-1].failed == ["job_1"]
    msg = queue.get("job_1")
    assert msg.state == "failing"
    assert "stalled 3 times" in msg.last_error
    assert queue.claim("w") is None

    # reported again until the job record has been failed
    assert queue.recover_stalled().failed == ["job_1"]
    assert queue.mark_failed("job_1") is True
    assert queue.get("job_1").state == "failed"
    assert queue.recover_stalled().failed == []
    assert queue.mark_failed("job_1") is False


def test_queues_are_isolated_by_name(session_factory, clock):
    a = JobQueue("a", session_factory=session_factory, clock=clock)
    b = JobQueue("b", session_factory=session_factory, clock=clock)
    a.enqueue("job_1")
    assert b.claim("w") is None
    assert a.claim("w").job_id == "job_1"
