"""
General exceptions used by multiple modules.
"""


class LauncherError(Exception):
    """ The base class for errors thrown while preparing a job for submission. """


class LauncherConfigError(LauncherError, ValueError):
    """ An exception thrown when the launcher configuration is invalid. """


class TemplateParseError(LauncherError):
    """
    Thrown when a job template cannot be compiled. The renderer cannot function without its
    templates so this is fatal at startup.
    """


class ArtifactError(LauncherError):
    """
    The base class for errors writing a job artifact.
    
    artifact - the name of the artifact that failed.
    """

    def __init__(self, artifact: str, message: str):
        super().__init__(message)
        self.artifact = artifact


class RenderError(ArtifactError):
    """ Thrown when a job artifact template fails to render. """


class WriteError(ArtifactError):
    """ Thrown when a rendered job artifact cannot be written to the job directory. """
