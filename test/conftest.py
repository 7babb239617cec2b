'''
Configure pytest fixtures and helper functions for this directory.
'''
import pytest
import traceback

from condorlauncher.models import Job


def assert_exception_correct(got: Exception, expected: Exception, print_traceback=False):
    if print_traceback:
        print("".join(traceback.TracebackException.from_exception(got).format()))
    assert got.args == expected.args
    assert type(got) == type(expected)


def job_dict(**kwargs):
    """
    Get a minimal job in its JSON form. Keyword arguments are added to the job.
    """
    j = {
        "uuid": "b9faffb2-453a-4ebe-9bba-1b96636cb3b1",
        "username": "ipcdev",
        "user_id": "3c6e1f4a-7d1b-11e6-8b77-86f30ca893d3",
        "group": "",
        "user_groups": ["ipcdev-group", "community"],
        "app_id": "c7f05682-23c8-4182-b9a2-e09650a5f49b",
        "app_name": "Word Count",
        "name": "wc_test",
        "email": "ipcdev@cyverse.org",
        "output_dir": "/iplant/home/ipcdev/analyses/wc_test/",
        "execution_target": "condor",
        "steps": [
            {
                "component": {
                    "name": "wc_wrapper.sh",
                    "location": "/usr/local3/bin/wc_tool-1.00",
                    "type": "executable",
                },
                "config": {
                    "inputs": [],
                    "params": [{"id": "p1", "name": "-l", "value": "", "order": 0}],
                },
                "environment": {"FOO": "bar"},
            }
        ],
    }
    j.update(kwargs)
    return j


def make_job(**kwargs) -> Job:
    """ Get a minimal job. Keyword arguments are added to the job JSON. """
    return Job.model_validate(job_dict(**kwargs))


def inputs(*inputs: tuple[str, str]) -> list[dict[str, str]]:
    """ Get step inputs in JSON form from (iRODS path, ticket) tuples. """
    return [
        {"id": f"i{n}", "name": p.split("/")[-1], "value": p, "ticket": t, "type": "FileInput"}
        for n, (p, t) in enumerate(inputs)
    ]


def step_with_inputs(*inps: tuple[str, str]) -> list[dict]:
    """ Get the steps for a job with a single step with the given inputs. """
    steps = job_dict()["steps"]
    steps[0]["config"]["inputs"] = inputs(*inps)
    return steps


@pytest.fixture
def job():
    return make_job()
