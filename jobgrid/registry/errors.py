class RegistryError(Exception):
    pass


class JobAlreadyExistsError(RegistryError):
    """Raised by create_job when an unscheduled job of the same name exists."""

    def __init__(self, job_name: str) -> None:
        super().__init__(f"job already exists: {job_name}")
        self.job_name = job_name


class InvalidNameError(RegistryError, ValueError):
    """Raised when a job, payload or lock name cannot be used as a key segment."""

    def __init__(self, name: str) -> None:
        super().__init__(f"invalid registry name: {name!r}")
        self.name = name
