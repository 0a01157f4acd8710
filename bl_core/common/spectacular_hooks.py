# bl_core/common/spectacular_hooks.py
from __future__ import annotations


def preprocess_exclude_alias_api(endpoints):
    """
    ROOT_URLCONF mounts the same API twice:
      /api/v1/  (primary)
      /api/     (unversioned alias)

    Without filtering, drf-spectacular documents both and suffixes operationIds
    (list2, retrieve2, ...). Only /api/v1/* is kept in the schema.
    """
    filtered = []
    for path, path_regex, method, callback in endpoints:
        if path.startswith("/api/") and not path.startswith("/api/v1/"):
            continue
        filtered.append((path, path_regex, method, callback))
    return filtered
