import posixpath

from .errors import InvalidNameError

JOB_PREFIX = "job"
PAYLOAD_PREFIX = "payload"
LOCK_PREFIX = "lock"

JOB_OBJECT = "object"
JOB_TARGET = "target"


def validate_name(name: str) -> str:
    """Require a name that maps to exactly one key segment."""
    if not name or "/" in name or name in (".", ".."):
        raise InvalidNameError(name)

    return name


class RegistryKeys:
    """
    Key layout of the registry under a fixed root:

        <root>/job/<name>/object    serialized Job
        <root>/job/<name>/target    machine boot ID
        <root>/payload/<name>       serialized JobPayload
        <root>/lock/<class>/<name>  serialized lock record (TTL)
    """

    __slots__ = ("_root",)

    def __init__(self, root: str) -> None:
        self._root = posixpath.normpath(f"/{root}").replace("//", "/")

    @property
    def root(self) -> str:
        return self._root

    def jobs(self) -> str:
        return posixpath.join(self._root, JOB_PREFIX)

    def job(self, job_name: str) -> str:
        return posixpath.join(self.jobs(), validate_name(job_name))

    def job_object(self, job_name: str) -> str:
        return posixpath.join(self.job(job_name), JOB_OBJECT)

    def job_target(self, job_name: str) -> str:
        return posixpath.join(self.job(job_name), JOB_TARGET)

    def payloads(self) -> str:
        return posixpath.join(self._root, PAYLOAD_PREFIX)

    def payload(self, payload_name: str) -> str:
        return posixpath.join(self.payloads(), validate_name(payload_name))

    def lock(self, resource_class: str, name: str) -> str:
        return posixpath.join(
            self._root,
            LOCK_PREFIX,
            validate_name(resource_class),
            validate_name(name),
        )
