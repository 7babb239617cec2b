"""
Pydantic models for job submissions.
"""

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    conlist,
    field_validator,
)
from typing import Annotated

from condorlauncher.arg_checkers import contains_control_characters as _contains_control_characters


# WARNING: Field aliases define the field names of the job JSON file consumed by the remote job
# runner. They cannot change without breaking the runner.


def _err_on_control_chars(s: str, allowed_chars: list[str] = None):
    if s is None:
        return s
    pos = _contains_control_characters(s, allowed_chars=allowed_chars)
    if pos > -1:
        raise ValueError(f"contains a disallowed control character at position {pos}")
    return s


def escape_classad(s: str) -> str:
    """
    Escape a string for use inside a double quoted ClassAd string literal.
    """
    return s.replace("\\", "\\\\").replace('"', '\\"')


class _Model(BaseModel):
    # fields the launcher doesn't use are passed through to the job file for the remote runner
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Component(_Model):
    """ The tool run by a job step. """

    name: Annotated[str, Field(min_length=1, description="The name of the tool.")]
    location: Annotated[str, Field(
        min_length=1,
        description="The location of the tool executable on the remote host.",
    )]
    type: str = "executable"
    description: str = ""

    @field_validator("name", "location", mode="after")
    @classmethod
    def _check_control_chars(cls, v):
        return _err_on_control_chars(v)


class StepInput(_Model):
    """
    An input file or folder for a job step.
    """

    id: str = ""
    name: str = ""
    value: Annotated[str, Field(description="The iRODS path of the input.")] = ""
    ticket: Annotated[str, Field(
        description="An iRODS ticket granting access to the input, if any."
    )] = ""
    type: str = "FileInput"
    retain: bool = False

    @field_validator("value", "ticket", mode="after")
    @classmethod
    def _check_control_chars(cls, v):
        return _err_on_control_chars(v)

    def irods_path(self) -> str:
        """ Get the iRODS path for the input. """
        return self.value


class StepParam(_Model):
    """ A command line parameter for a job step. """

    id: str = ""
    name: str = ""
    value: str = ""
    order: int = 0


class StepConfig(_Model):
    """ The configuration of a job step. """

    inputs: list[StepInput] = []
    params: list[StepParam] = []


class Step(_Model):
    """ A step in a job. """

    component: Component
    config: StepConfig = StepConfig()
    type: str = "condor"
    environment: dict[str, str] = {}


class Job(_Model):
    """
    A job submission.

    The input_path_list_file, input_tickets_file, and output_ticket_file fields are populated
    when the job's artifacts are written.
    """

    invocation_id: Annotated[str, Field(
        alias="uuid",
        min_length=1,
        description="The unique ID of this invocation of the job.",
    )]
    submitter: Annotated[str, Field(
        alias="username",
        min_length=1,
        description="The user name of the user submitting the job.",
    )]
    user_id: str = ""
    group: Annotated[str, Field(description="The accounting group for the job, if any.")] = ""
    user_groups: list[str] = []
    app_id: str = ""
    app_name: str = ""
    name: str = ""
    description: str = ""
    email: str = ""
    output_dir: str = ""
    output_dir_ticket: Annotated[str, Field(
        description="An iRODS ticket granting write access to the output directory, if any."
    )] = ""
    execution_target: str = "condor"
    steps: conlist(Step, min_length=1)
    memory_request: Annotated[int | None, Field(
        ge=0, description="The requested memory in bytes."
    )] = None
    cpu_request: Annotated[float | None, Field(
        ge=0, description="The requested number of cores. May be fractional."
    )] = None
    disk_request: Annotated[int | None, Field(
        ge=0, description="The requested disk space in bytes."
    )] = None
    input_path_list_file: Annotated[str, Field(alias="input_path_list")] = ""
    input_tickets_file: Annotated[str, Field(alias="input_ticket_list")] = ""
    output_ticket_file: Annotated[str, Field(alias="output_ticket_list")] = ""

    @field_validator(
        "invocation_id", "submitter", "user_id", "group", "output_dir", "output_dir_ticket",
        mode="after",
    )
    @classmethod
    def _check_control_chars(cls, v):
        return _err_on_control_chars(v)

    @field_validator("user_groups", mode="after")
    @classmethod
    def _check_user_groups(cls, v: list[str]) -> list[str]:
        for g in v:
            _err_on_control_chars(g)
        return v

    def user_id_for_submission(self) -> str:
        """
        Get the user ID in a form usable as an HTCondor concurrency limit name.
        """
        return "_" + self.user_id.replace("-", "")

    def format_user_groups(self) -> str:
        """
        Get the user's groups formatted as a quoted, comma separated ClassAd string.
        """
        return '"' + ",".join(escape_classad(g) for g in self.user_groups) + '"'

    def inputs(self) -> list[StepInput]:
        """ Get the inputs for all the steps in the job. """
        return [i for s in self.steps for i in s.config.inputs]

    def filter_inputs_with_tickets(self) -> list[StepInput]:
        """ Get the inputs for all the steps in the job that have an iRODS ticket. """
        return [i for i in self.inputs() if i.ticket]

    def filter_inputs_without_tickets(self) -> list[StepInput]:
        """ Get the inputs for all the steps in the job that have no iRODS ticket. """
        return [i for i in self.inputs() if not i.ticket]

    def output_directory(self) -> str:
        """ Get the output directory with any trailing slash removed. """
        return self.output_dir.rstrip("/")
