"""Exception hierarchy for QuestOps."""


class QuestOpsError(Exception):
    """Base class for all QuestOps errors."""


class ConfigError(QuestOpsError):
    """Configuration could not be loaded or validated."""


class DeploymentError(QuestOpsError):
    """A pipeline phase failed; the deployment must stop."""


class RollbackError(DeploymentError):
    """Rollback itself failed after a deployment failure."""

    def __init__(self, message: str = "Both deployment and rollback failed. Manual intervention required.") -> None:
        super().__init__(message)


class CommandError(QuestOpsError):
    """A shell command exited with a non-zero status."""

    def __init__(self, command: str, returncode: int, output: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"Command '{command}' exited with status {returncode}")
