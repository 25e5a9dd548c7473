import threading

from gleaner.stats import Counter, RepoStats, RunStats


def test_inc_from_unset_counts_up():
    stats = RepoStats("repo")
    stats.inc(Counter.STORED)
    stats.inc(Counter.STORED)
    assert stats.counts[Counter.STORED] == 2


def test_set_replaces_value():
    stats = RepoStats("repo")
    stats.set(Counter.COUNT, 42)
    assert stats.counts == {Counter.COUNT: 42}
    stats.set(Counter.COUNT, 0)
    assert stats.counts == {Counter.COUNT: 0}


def test_inc_is_thread_safe():
    stats = RepoStats("repo")
    workers, per_worker = 8, 200

    def work():
        for _ in range(per_worker):
            stats.inc(Counter.SUMMONED)

    threads = [threading.Thread(target=work) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert stats.counts[Counter.SUMMONED] == workers * per_worker


def test_counts_is_a_snapshot():
    stats = RepoStats("repo")
    snapshot = stats.counts
    snapshot[Counter.ISSUES] = 99
    assert Counter.ISSUES not in stats.counts


def test_repo_output_lists_only_recorded_counters():
    stats = RepoStats("repo")
    stats.set(Counter.COUNT, 17)
    text = stats.output()
    assert text.startswith("Source: repo")
    assert f"{Counter.COUNT.value}: 17" in text
    assert Counter.STORED.value not in text


def test_run_add_returns_same_repo_for_same_name():
    run = RunStats()
    first = run.add("a")
    first.inc(Counter.ISSUES)
    assert run.add("a") is first
    assert run.add("b") is not first


def test_run_output_includes_reason_and_repos():
    run = RunStats()
    run.add("alpha").set(Counter.COUNT, 3)
    run.add("beta").set(Counter.COUNT, 4)
    run.stop_reason = "Complete"
    text = run.output()
    assert "Reason: Complete" in text
    assert run.add("alpha").output() in text
    assert run.add("beta").output() in text
    assert text.index("alpha") < text.index("beta")


def test_output_to_file_writes_output(tmp_path):
    run = RunStats()
    run.add("alpha").inc(Counter.STORED)
    run.stop_reason = "Complete"
    path = run.output_to_file(tmp_path / "logs")
    assert path.name.startswith("gleaner-runstats-")
    assert path.suffix == ".log"
    assert path.read_text(encoding="utf-8") == run.output()