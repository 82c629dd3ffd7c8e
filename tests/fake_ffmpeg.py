# Writes a stand-in ffmpeg executable so transcoder paths run without the real tool.
import os
import stat
import sys

_SCRIPT = '''#!{python}
import sys
import time

args = sys.argv[1:]
with open({argv_log!r}, "w") as fh:
    fh.write("\\n".join(args))

mode = {mode!r}
if mode == "fail":
    sys.stderr.write("Invalid data found when processing input\\n")
    sys.exit(1)
if mode == "hang":
    time.sleep(60)

src = args[args.index("-i") + 1]
with open(src, "rb") as fh:
    data = fh.read()
with open(args[-1], "wb") as fh:
    fh.write(b"TRANSCODED:" + data)
'''


def write_fake_ffmpeg(directory: str, mode: str = "copy") -> tuple[str, str]:
    path = os.path.join(directory, f"fake-ffmpeg-{mode}")
    argv_log = path + ".args"
    with open(path, "w") as fh:
        fh.write(_SCRIPT.format(python=sys.executable, argv_log=argv_log, mode=mode))
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path, argv_log


def read_argv(argv_log: str) -> list[str]:
    with open(argv_log) as fh:
        return fh.read().split("\n")
