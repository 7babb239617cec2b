import json
from pydantic import ValidationError
from pytest import raises

from condorlauncher import models
from conftest import job_dict, make_job, step_with_inputs


def test_job_minimal():
    j = models.Job.model_validate({
        "uuid": "id1",
        "username": "user",
        "steps": [{"component": {"name": "tool", "location": "/bin"}}],
    })
    assert j.invocation_id == "id1"
    assert j.submitter == "user"
    assert j.user_id == ""
    assert j.group == ""
    assert j.user_groups == []
    assert j.execution_target == "condor"
    assert j.memory_request is None
    assert j.cpu_request is None
    assert j.disk_request is None
    assert j.input_path_list_file == ""
    assert j.input_tickets_file == ""
    assert j.output_ticket_file == ""
    step = j.steps[0]
    assert step.component.model_dump() == models.Component(
        name="tool", location="/bin", type="executable", description="").model_dump()
    assert step.config.model_dump() == {"inputs": [], "params": []}
    assert step.type == "condor"
    assert step.environment == {}


def test_job_keeps_unknown_fields():
    j = make_job(notify=True, file_metadata=[{"attr": "a"}])
    assert j.model_extra == {"notify": True, "file_metadata": [{"attr": "a"}]}
    d = j.model_dump(by_alias=True)
    assert d["notify"] is True
    assert d["file_metadata"] == [{"attr": "a"}]


def test_job_populate_by_name():
    j = models.Job(
        invocation_id="id2",
        submitter="sub",
        steps=[models.Step(component=models.Component(name="n", location="/l"))],
        output_ticket_file="output_ticket",
    )
    assert j.invocation_id == "id2"
    assert j.output_ticket_file == "output_ticket"
    d = j.model_dump(by_alias=True)
    assert d["uuid"] == "id2"
    assert d["username"] == "sub"
    assert d["output_ticket_list"] == "output_ticket"
    assert d["input_ticket_list"] == ""
    assert d["input_path_list"] == ""


def test_job_resource_requests():
    j = make_job(memory_request=8589934592, cpu_request=1.5, disk_request=0)
    assert j.memory_request == 8589934592
    assert j.cpu_request == 1.5
    assert j.disk_request == 0


def test_job_fail_missing_fields():
    for field in ["uuid", "username", "steps"]:
        d = job_dict()
        del d[field]
        with raises(ValidationError, match=f"{field}\n  Field required"):
            models.Job.model_validate(d)


def test_job_fail_empty_fields():
    _job_fail({"uuid": ""}, "String should have at least 1 character")
    _job_fail({"username": ""}, "String should have at least 1 character")
    _job_fail({"steps": []}, "List should have at least 1 item")


def test_job_fail_negative_requests():
    for f in ["memory_request", "cpu_request", "disk_request"]:
        _job_fail({f: -1}, "Input should be greater than or equal to 0")


def test_job_fail_control_characters():
    _job_fail({"uuid": "id\nfoo"}, "contains a disallowed control character at position 2")
    _job_fail({"username": "u\tser"}, "contains a disallowed control character at position 1")
    _job_fail({"group": "gr\x00"}, "contains a disallowed control character at position 2")
    _job_fail(
        {"user_groups": ["ok", "n\u0007t"]},
        "contains a disallowed control character at position 1",
    )
    steps = step_with_inputs(("/iplant/home/u/f\n", ""))
    _job_fail({"steps": steps}, "contains a disallowed control character at position 16")


def _job_fail(fields, expected):
    with raises(ValidationError, match=expected):
        make_job(**fields)


def test_user_id_for_submission():
    assert make_job().user_id_for_submission() == "_3c6e1f4a7d1b11e68b7786f30ca893d3"
    assert make_job(user_id="").user_id_for_submission() == "_"
    assert make_job(user_id="abc").user_id_for_submission() == "_abc"


def test_format_user_groups():
    assert make_job().format_user_groups() == '"ipcdev-group,community"'
    assert make_job(user_groups=[]).format_user_groups() == '""'
    assert make_job(user_groups=['a"b', "c\\d"]).format_user_groups() == r'"a\"b,c\\d"'


def test_filter_inputs():
    steps = step_with_inputs(
        ("/iplant/home/u/a.txt", ""),
        ("/iplant/home/u/b.txt", "tick1"),
        ("/iplant/home/u/c.txt", ""),
    )
    second = json.loads(json.dumps(steps[0]))
    second["config"]["inputs"] = [
        {"value": "/iplant/home/u/d.txt", "ticket": "tick2"},
    ]
    j = make_job(steps=steps + [second])
    assert [i.irods_path() for i in j.inputs()] == [
        "/iplant/home/u/a.txt",
        "/iplant/home/u/b.txt",
        "/iplant/home/u/c.txt",
        "/iplant/home/u/d.txt",
    ]
    assert [(i.irods_path(), i.ticket) for i in j.filter_inputs_with_tickets()] == [
        ("/iplant/home/u/b.txt", "tick1"),
        ("/iplant/home/u/d.txt", "tick2"),
    ]
    assert [i.irods_path() for i in j.filter_inputs_without_tickets()] == [
        "/iplant/home/u/a.txt",
        "/iplant/home/u/c.txt",
    ]


def test_filter_inputs_empty():
    j = make_job()
    assert j.inputs() == []
    assert j.filter_inputs_with_tickets() == []
    assert j.filter_inputs_without_tickets() == []


def test_output_directory():
    assert make_job().output_directory() == "/iplant/home/ipcdev/analyses/wc_test"
    assert make_job(output_dir="/a/b").output_directory() == "/a/b"
    assert make_job(output_dir="/a/b//").output_directory() == "/a/b"
    assert make_job(output_dir="").output_directory() == ""


def test_job_json_round_trip():
    j = make_job(
        memory_request=1024,
        cpu_request=2.0,
        output_dir_ticket="outtick",
        steps=step_with_inputs(("/iplant/home/u/a.txt", ""), ("/iplant/home/u/b.txt", "t")),
    )
    j.input_path_list_file = "input_path_list"
    j2 = models.Job.model_validate_json(j.model_dump_json(by_alias=True))
    assert j2.model_dump() == j.model_dump()
