"""
Names for fields for logging to keep logs consistent. Separators should be underscores.
"""

# Fields to use in log extra dicts
JOB_ID = "job_id"
STEP = "step"
ARTIFACT = "artifact"
FILE = "file"
MOUNT = "mount"
ROLE = "role"
DIALECT = "dialect"
