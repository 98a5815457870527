import re
from typing import List, Optional

GZIP_CONTENT_TYPE = re.compile(r"application/(x-gzip|gzip)(; charset=binary)?")
VENDOR_CONTENT_TYPE = re.compile(r"application/vnd\.redhat\.([a-z0-9-]+)\.([a-z0-9-]+).*")

TEST_FIELD = "test"
FILE_FIELDS = ("file", "upload")


class RequestValidator:
    """
    Checks an incoming upload before the pipeline runs: content type of the
    archive part and its size.
    """

    def __init__(self, allowed_types: List[str], max_size: int):
        """
        Args:
            allowed_types (List[str]): Content types accepted verbatim.
            max_size (int): Largest accepted archive in bytes.
        """
        self.allowed_types = allowed_types
        self.max_size = max_size

    def is_valid_content_type(self, content_type: Optional[str]) -> bool:
        content_type = content_type or ""
        if content_type in self.allowed_types:
            return True
        if GZIP_CONTENT_TYPE.search(content_type):
            return True
        return VENDOR_CONTENT_TYPE.search(content_type) is not None

    def is_too_large(self, size: Optional[int]) -> bool:
        return size is not None and size > self.max_size

    @staticmethod
    def is_test_request(form) -> bool:
        return form.get(TEST_FIELD) == "test"

    @staticmethod
    def pick_file(form):
        """Returns the archive part from the ``file`` field, falling back to ``upload``."""
        for field_name in FILE_FIELDS:
            value = form.get(field_name)
            if value is not None and not isinstance(value, str):
                return value
        return None
