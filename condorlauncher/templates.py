"""
Templates for the files written to a job directory.

The HTCondor submit file comes in two dialects:

* grid_sge - the job is forwarded through the HTCondor grid universe to a remote HTCondor
  instance that submits it to SGE. Resource requests are passed to SGE as extra submit arguments.
* condor - the job runs in the vanilla universe on the local HTCondor pool. Resource requests
  are HTCondor request_* lines.

Both dialects share the ClassAds and file transfer settings the job runner depends on.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum
from string import Template
from typing import Any

from condorlauncher.constants import TRANSFER_INPUT_FILES, TRANSFER_OUTPUT_FILES
from condorlauncher.exceptions import TemplateParseError
from condorlauncher.models import escape_classad, Job
from condorlauncher.resources import (
    condor_bytes,
    condor_cpus,
    format_cores,
    sge_bytes,
)


DEFAULT_ACCOUNTING_GROUP = "de"
"""
The accounting group for jobs that don't specify a group.
"""

GRID_RESOURCE = "condor SAURON1.pers.ad.uni-graz.at SAURON1.pers.ad.uni-graz.at"
"""
The remote HTCondor instance grid universe jobs are forwarded to.
"""


class ConfigTemplate(Template):
    """
    A template whose braced placeholders may be dotted configuration keys,
    e.g. `${amqp.exchange.name}`.
    """

    braceidpattern = r"(?a:[_a-z][_a-z0-9]*(?:\.[_a-z][_a-z0-9]*)*)"


def compile_template(
    name: str, text: str, identifiers: Iterable[str], template_class: type[Template] = Template
) -> Template:
    """
    Compile a template and check it contains exactly the expected placeholders.

    name - the name of the template for error messages.
    text - the template text.
    identifiers - the placeholder names the template must contain.
    template_class - the template class to compile the text with.

    Throws TemplateParseError if the template is invalid.
    """
    tmpl = template_class(text)
    if not tmpl.is_valid():
        raise TemplateParseError(f"failed to parse {name} template text: invalid placeholder")
    found = set(tmpl.get_identifiers())
    expected = set(identifiers)
    if found != expected:
        errs = []
        if found - expected:
            errs.append(f"unknown placeholders {sorted(found - expected)}")
        if expected - found:
            errs.append(f"missing placeholders {sorted(expected - found)}")
        raise TemplateParseError(f"failed to parse {name} template text: {', '.join(errs)}")
    return tmpl


_ACCOUNTING_TEXT = """accounting_group = ${accounting_group}
accounting_group_user = ${submitter}
+IpcUuid = "${invocation_id}"
+IpcJobId = "generated_script"
+IpcUsername = "${quoted_submitter}"
+IpcUserGroups = ${user_groups}
concurrency_limits = ${user_id_for_submission}

+IpcExe = "${exe}"
+IpcExePath = "${exe_path}"
"""

_TRANSFER_TEXT = f"""should_transfer_files = YES
transfer_input_files = ${{transfer_input_files}}
transfer_output_files = {",".join(TRANSFER_OUTPUT_FILES)}
when_to_transfer_output = ON_EXIT_OR_EVICT
notification = NEVER
queue
"""

_COMMON_FIELDS = frozenset({
    "accounting_group",
    "submitter",
    "quoted_submitter",
    "invocation_id",
    "user_groups",
    "user_id_for_submission",
    "exe",
    "exe_path",
    "transfer_input_files",
})

_GRID_SGE_TEXT = f"""universe = grid
grid_resource = {GRID_RESOURCE}

+remote_universe = 9
+remote_gridresource = "sge"
+remote_ShouldTransferFiles = "YES"
+remote_WhenToTransferOutput = "ON_EXIT"
+remote_queue = "sge"
+remote_batchqueue = "all.q"

executable = /software/cyverse/entrypoint
transfer_executable = False

+remote_BatchExtraSubmitArgs = "${{batch_extra_submit_args}}"

arguments = --config config --job job
output = script-output.log
error = script-error.log
log = condor.log

""" + _ACCOUNTING_TEXT + _TRANSFER_TEXT

_CONDOR_TEXT = """universe = vanilla
executable = /usr/local/bin/road-runner
rank = mips
requirements = (HAS_HOST_MOUNTS == True)
arguments = --config config --job job
output = script-output.log
error = script-error.log
log = condor.log
${resource_requests}
""" + _ACCOUNTING_TEXT + _TRANSFER_TEXT


# The SGE args are a single classad string, so the newlines are the escaped \n characters
_SGE_NEWLINE = "\\n"


class SubmitDialect(str, Enum):
    """ The dialect of the HTCondor submit file. """

    GRID_SGE = "grid_sge"
    CONDOR = "condor"


class SubmissionDialect(ABC):
    """
    A strategy for rendering the HTCondor submit file.
    """

    def __init__(self, dialect: SubmitDialect, text: str, dialect_fields: Iterable[str]):
        self._dialect = dialect
        self._template = compile_template(
            f"{dialect.value} submission", text, _COMMON_FIELDS | set(dialect_fields)
        )

    @property
    def dialect(self) -> SubmitDialect:
        """ The dialect rendered by this strategy. """
        return self._dialect

    def render(self, job: Job) -> str:
        """ Render the submit file for a job. """
        return self._template.substitute(self._common_fields(job) | self._dialect_fields(job))

    def _common_fields(self, job: Job) -> dict[str, str]:
        step = job.steps[0]
        transfer = list(TRANSFER_INPUT_FILES)
        for f in [job.output_ticket_file, job.input_tickets_file, job.input_path_list_file]:
            if f:
                transfer.append(f)
        return {
            "accounting_group": job.group or DEFAULT_ACCOUNTING_GROUP,
            "submitter": job.submitter,
            "quoted_submitter": escape_classad(job.submitter),
            "invocation_id": escape_classad(job.invocation_id),
            "user_groups": job.format_user_groups(),
            "user_id_for_submission": job.user_id_for_submission(),
            "exe": escape_classad(step.component.name),
            "exe_path": escape_classad(step.component.location),
            "transfer_input_files": ",".join(transfer),
        }

    @abstractmethod
    def _dialect_fields(self, job: Job) -> dict[str, Any]:
        raise NotImplementedError()


class GridSGESubmission(SubmissionDialect):
    """
    Renders submit files for jobs forwarded to SGE via the HTCondor grid universe.
    """

    def __init__(self, sge_memory_floor: int = 0):
        """
        sge_memory_floor - the minimum per slot memory to request from SGE in bytes, or 0 for
            no minimum.
        """
        super().__init__(SubmitDialect.GRID_SGE, _GRID_SGE_TEXT, ["batch_extra_submit_args"])
        if sge_memory_floor is None or sge_memory_floor < 0:
            raise ValueError("sge_memory_floor must be >= 0")
        self._floor = sge_memory_floor

    def batch_extra_submit_args(self, job: Job) -> str:
        """
        Get the SGE submit arguments for a job's resource requests.
        """
        args = f"#$-l h_vmem={sge_bytes(job.memory_request, job.cpu_request, self._floor)}"
        args += _SGE_NEWLINE
        if job.cpu_request:
            args += f"#$-pe smp {format_cores(job.cpu_request)}{_SGE_NEWLINE}"
        if job.disk_request:
            args += f"#$-l tmpspace={sge_bytes(job.disk_request, 0, 0)}{_SGE_NEWLINE}"
        return args

    def _dialect_fields(self, job: Job) -> dict[str, Any]:
        return {"batch_extra_submit_args": self.batch_extra_submit_args(job)}


class CondorSubmission(SubmissionDialect):
    """
    Renders submit files for jobs run in the local HTCondor pool.
    """

    def __init__(self):
        super().__init__(SubmitDialect.CONDOR, _CONDOR_TEXT, ["resource_requests"])

    def resource_requests(self, job: Job) -> str:
        """
        Get the HTCondor request lines for a job. Only requested resources are included.
        """
        lines = ""
        if job.cpu_request:
            lines += f"request_cpus = {condor_cpus(job.cpu_request)}\n"
        if job.memory_request:
            lines += f"request_memory = {condor_bytes(job.memory_request)}\n"
        if job.disk_request:
            lines += f"request_disk = {condor_bytes(job.disk_request)}\n"
        return lines

    def _dialect_fields(self, job: Job) -> dict[str, Any]:
        return {"resource_requests": self.resource_requests(job)}


def get_submission_dialect(dialect: SubmitDialect, sge_memory_floor: int = 0) -> SubmissionDialect:
    """
    Get the submit file strategy for a dialect.

    dialect - the dialect.
    sge_memory_floor - the minimum per slot memory to request from SGE in bytes. Ignored for
        dialects other than grid_sge.
    """
    match dialect:
        case SubmitDialect.GRID_SGE:
            return GridSGESubmission(sge_memory_floor)
        case SubmitDialect.CONDOR:
            return CondorSubmission()
        case _:
            raise ValueError(f"Unknown submit dialect: {dialect}")


JOB_CONFIG_TEXT = """
amqp:
    uri: ${amqp.uri}
    exchange:
        name: ${amqp.exchange.name}
        type: ${amqp.exchange.type}
irods:
    base: "${irods.base}"
porklock:
    image: "${porklock.image}"
    tag: "${porklock.tag}"
condor:
    filter_files: "${condor.filter_files}"
vault:
    token: "${vault.child_token.token}"
    url: "${vault.url}"
"""

JOB_CONFIG_KEYS = frozenset({
    "amqp.uri",
    "amqp.exchange.name",
    "amqp.exchange.type",
    "irods.base",
    "porklock.image",
    "porklock.tag",
    "condor.filter_files",
    "vault.child_token.token",
    "vault.url",
})
"""
The configuration keys used in the job configuration template.
"""

PATH_LIST_HEADER_KEY = "path_list.file_identifier"
TICKETS_PATH_LIST_HEADER_KEY = "tickets_path_list.file_identifier"

OUTPUT_TICKET_TEXT = "${header}\n${ticket},${path}\n"
OUTPUT_TICKET_FIELDS = frozenset({"header", "ticket", "path"})

LIST_TEXT = "${header}\n${lines}"
LIST_FIELDS = frozenset({"header", "lines"})
