import pytest

from nodeproblem.problem_daemon import (
    ProblemDaemonHandler,
    ProblemDaemonNotFoundError,
    get_problem_daemon_handler,
    get_problem_daemon_names,
    new_problem_daemons,
    register,
    unregister_all,
)


@pytest.fixture(autouse=True)
def _clean_registry():
    unregister_all()
    yield
    unregister_all()


def _factory(config_path):
    return None


def test_registration():
    register("foo", ProblemDaemonHandler(_factory, "foo option"))
    register("bar", ProblemDaemonHandler(_factory, "bar option"))
    assert sorted(get_problem_daemon_names()) == sorted(["foo", "bar"])
    assert get_problem_daemon_handler("foo").cmd_option_description == "foo option"
    assert get_problem_daemon_handler("bar").cmd_option_description == "bar option"


def test_get_problem_daemon_handler():
    handler = ProblemDaemonHandler(_factory, "foo option")
    register("foo", handler)
    assert get_problem_daemon_handler("foo") is handler
    with pytest.raises(ProblemDaemonNotFoundError):
        get_problem_daemon_handler("bar")


def test_unregister_all_empties_registry():
    register("foo", ProblemDaemonHandler(_factory))
    unregister_all()
    assert get_problem_daemon_names() == []


def test_new_problem_daemons_skips_duplicate_configs():
    created = []

    def factory(config_path):
        created.append(config_path)
        return ("monitor", config_path)

    register("foo", ProblemDaemonHandler(factory))
    register("bar", ProblemDaemonHandler(factory))
    daemons = new_problem_daemons({"foo": ["a.json", "b.json"], "bar": ["a.json", "c.json"]})
    assert sorted(created) == ["a.json", "b.json", "c.json"]
    assert sorted(daemons) == [("monitor", "a.json"), ("monitor", "b.json"), ("monitor", "c.json")]


def test_new_problem_daemons_unknown_type_raises():
    with pytest.raises(ProblemDaemonNotFoundError):
        new_problem_daemons({"missing": ["a.json"]})