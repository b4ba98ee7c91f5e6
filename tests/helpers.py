import gzip
import io
import tarfile
from typing import List, Optional, Tuple

import configargparse

from chart_metadata.__main__ import get_global_config_parser
from step_exec_lib.steps import BuildStep

ORIGINAL_CHART_YAML = b"name: original\nversion: 1.0.0\n"

RENAME_PATCH = """--- a/Chart.yaml
+++ b/Chart.yaml
@@ -1,2 +1,2 @@
-name: original
+name: patched
 version: 1.0.0
"""

# context doesn't match ORIGINAL_CHART_YAML in any direction
NOT_MATCHING_PATCH = """--- a/Chart.yaml
+++ b/Chart.yaml
@@ -1,2 +1,2 @@
-name: something-else
+name: patched
 version: 9.9.9
"""

# (member name, content); None content creates a directory
Member = Tuple[str, Optional[bytes]]


def make_tar(members: List[Member]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, data in members:
            info = tarfile.TarInfo(name)
            if data is None:
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
                continue
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def gzip_bytes(data: bytes) -> bytes:
    buf = io.BytesIO()
    with gzip.GzipFile(fileobj=buf, mode="wb") as gz:
        gz.write(data)
    return buf.getvalue()


def make_tgz(members: List[Member]) -> bytes:
    return gzip_bytes(make_tar(members))


def init_config_for_step(step: BuildStep) -> configargparse.Namespace:
    config_parser = get_global_config_parser()
    step.initialize_config(config_parser)
    config = config_parser.parse_known_args(args=[])[0]
    return config
