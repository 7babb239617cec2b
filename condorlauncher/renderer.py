"""
Writes the files needed to submit a job to HTCondor into a job directory.
"""

from collections.abc import Mapping
import logging
from pathlib import Path
from typing import Callable

from condorlauncher import constants
from condorlauncher import logfields
from condorlauncher.arg_checkers import not_falsy as _not_falsy
from condorlauncher.config import ConfigProvider
from condorlauncher.exceptions import RenderError, WriteError
from condorlauncher.models import Job
from condorlauncher.templates import (
    compile_template,
    ConfigTemplate,
    JOB_CONFIG_KEYS,
    JOB_CONFIG_TEXT,
    LIST_FIELDS,
    LIST_TEXT,
    OUTPUT_TICKET_FIELDS,
    OUTPUT_TICKET_TEXT,
    PATH_LIST_HEADER_KEY,
    SubmissionDialect,
    TICKETS_PATH_LIST_HEADER_KEY,
)


# Artifact names for errors and logs
ARTIFACT_OUTPUT_TICKET = "output_ticket"
ARTIFACT_INPUT_TICKETS = "input_tickets"
ARTIFACT_INPUT_PATH_LIST = "input_path_list"
ARTIFACT_SUBMISSION = "submission"
ARTIFACT_JOB_CONFIG = "job_config"
ARTIFACT_JOB = "job"


class _ConfigMapping(Mapping):
    # exposes a config provider to a template. Missing keys are empty strings

    def __init__(self, provider: ConfigProvider):
        self._provider = provider

    def __getitem__(self, key: str) -> str:
        return self._provider.get_string(key)

    def __iter__(self):
        return iter(JOB_CONFIG_KEYS)

    def __len__(self):
        return len(JOB_CONFIG_KEYS)


class ArtifactRenderer:
    """
    Renders job artifacts into a job directory.

    All templates are compiled when the renderer is created. Once created, the renderer is
    read only and may be shared between concurrent jobs, as long as each job has its own
    directory.
    """

    def __init__(self, dialect: SubmissionDialect):
        """
        Create the renderer.

        dialect - the strategy for rendering the HTCondor submit file.

        Throws TemplateParseError if any template fails to compile.
        """
        self._dialect = _not_falsy(dialect, "dialect")
        self._job_config = compile_template(
            ARTIFACT_JOB_CONFIG, JOB_CONFIG_TEXT, JOB_CONFIG_KEYS, template_class=ConfigTemplate
        )
        self._output_ticket = compile_template(
            ARTIFACT_OUTPUT_TICKET, OUTPUT_TICKET_TEXT, OUTPUT_TICKET_FIELDS
        )
        self._input_tickets = compile_template(ARTIFACT_INPUT_TICKETS, LIST_TEXT, LIST_FIELDS)
        self._input_path_list = compile_template(ARTIFACT_INPUT_PATH_LIST, LIST_TEXT, LIST_FIELDS)
        logging.getLogger(__name__).info(
            "Compiled job templates", extra={logfields.DIALECT: dialect.dialect.value}
        )

    @property
    def dialect(self) -> SubmissionDialect:
        """ The strategy used to render HTCondor submit files. """
        return self._dialect

    def render(self, job: Job, dir_path: Path, config: ConfigProvider) -> Path:
        """
        Write the artifacts for a job into a directory. In order:

        1. The output ticket list, if the job has an output directory ticket.
        2. The input ticket list, if any inputs have tickets.
        3. The input path list, if any inputs do not have tickets.
        4. The HTCondor submit file.
        5. The job runner configuration.
        6. The job as JSON.

        The names of the list files that are written are recorded on the job and the submit
        file includes them in its input transfer list. Existing files are overwritten.
        The directory is neither created nor removed.

        job - the job. Its list file fields are modified.
        dir_path - the directory in which to write the files. It must exist.
        config - the configuration for the job configuration template, including the job's
            child token.

        Returns the absolute path of the submit file.

        Throws RenderError or WriteError naming the failed artifact.
        """
        _not_falsy(job, "job")
        _not_falsy(dir_path, "dir_path")
        _not_falsy(config, "config")
        dir_path = Path(dir_path)
        tickets_header = config.get_string(TICKETS_PATH_LIST_HEADER_KEY)
        job.output_ticket_file = self._write_optional(
            dir_path,
            ARTIFACT_OUTPUT_TICKET,
            constants.OUTPUT_TICKET_FILE,
            bool(job.output_dir_ticket),
            lambda: self._output_ticket.substitute(
                header=tickets_header,
                ticket=job.output_dir_ticket,
                path=job.output_directory(),
            ),
        )
        ticketed = job.filter_inputs_with_tickets()
        job.input_tickets_file = self._write_optional(
            dir_path,
            ARTIFACT_INPUT_TICKETS,
            constants.INPUT_TICKETS_FILE,
            bool(ticketed),
            lambda: self._input_tickets.substitute(
                header=tickets_header,
                lines="".join(f"{i.ticket},{i.irods_path()}\n" for i in ticketed),
            ),
        )
        unticketed = job.filter_inputs_without_tickets()
        job.input_path_list_file = self._write_optional(
            dir_path,
            ARTIFACT_INPUT_PATH_LIST,
            constants.INPUT_PATH_LIST_FILE,
            bool(unticketed),
            lambda: self._input_path_list.substitute(
                header=config.get_string(PATH_LIST_HEADER_KEY),
                lines="".join(f"{i.irods_path()}\n" for i in unticketed),
            ),
        )
        # the submit file references the list files, so must be written after them
        submit_file = self._write(
            dir_path,
            ARTIFACT_SUBMISSION,
            constants.SUBMIT_FILE,
            lambda: self._dialect.render(job),
        )
        self._write(
            dir_path,
            ARTIFACT_JOB_CONFIG,
            constants.CONFIG_FILE,
            lambda: self._job_config.substitute(_ConfigMapping(config)),
        )
        self._write(
            dir_path,
            ARTIFACT_JOB,
            constants.JOB_FILE,
            lambda: job.model_dump_json(by_alias=True),
        )
        logging.getLogger(__name__).info(
            "Wrote job artifacts",
            extra={logfields.JOB_ID: job.invocation_id, logfields.FILE: str(submit_file)},
        )
        return submit_file.absolute()

    def _write_optional(
        self,
        dir_path: Path,
        artifact: str,
        filename: str,
        required: bool,
        render: Callable[[], str],
    ) -> str:
        if not required:
            return ""
        self._write(dir_path, artifact, filename, render)
        return filename

    def _write(
        self, dir_path: Path, artifact: str, filename: str, render: Callable[[], str]
    ) -> Path:
        try:
            text = render()
        except (KeyError, ValueError) as e:
            raise RenderError(artifact, f"failed to render {artifact}: {e}") from e
        path = dir_path / filename
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise WriteError(artifact, f"failed to write {artifact} to {path}: {e}") from e
        logging.getLogger(__name__).debug(
            "Wrote artifact", extra={logfields.ARTIFACT: artifact, logfields.FILE: str(path)}
        )
        return path
