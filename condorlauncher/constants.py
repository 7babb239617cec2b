"""
Names of the files in a job directory. The remote job runner and the HTCondor submit file
depend on these names.
"""


SUBMIT_FILE = "iplant.cmd"
"""
The HTCondor submit file.
"""

CONFIG_FILE = "config"
"""
The job runner configuration file.
"""

JOB_FILE = "job"
"""
The job submission serialized as JSON.
"""

IRODS_CONFIG_FILE = "irods-config"
"""
The iRODS configuration file. It is written by the code that submits the job, not the renderer.
"""

OUTPUT_TICKET_FILE = "output_ticket"
"""
The list containing the iRODS ticket for the output directory, if any.
"""

INPUT_TICKETS_FILE = "input_tickets"
"""
The list of input iRODS paths that have tickets, along with the tickets.
"""

INPUT_PATH_LIST_FILE = "input_path_list"
"""
The list of input iRODS paths that do not have tickets.
"""

TRANSFER_INPUT_FILES = (IRODS_CONFIG_FILE, SUBMIT_FILE, CONFIG_FILE, JOB_FILE)
"""
The files always transferred to the HTCondor worker, in order.
"""

TRANSFER_OUTPUT_FILES = (
    "workingvolume/logs/logs-stdout-output",
    "workingvolume/logs/logs-stderr-output",
)
"""
The job logs transferred back from the HTCondor worker.
"""
