BINARY_EXTENSIONS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".ico",
    ".svg",
    ".pdf",
    ".zip",
    ".tar.gz",
    ".tgz",
    ".gz",
    ".7z",
    ".rar",
    ".exe",
    ".dll",
    ".so",
    ".a",
    ".o",
    ".pyc",
    ".pyo",
    ".pyd",
    ".class",
    ".jar",
    ".war",
    ".ear",
    ".bin",
    ".dat",
    ".db",
    ".sqlite",
    ".sqlite3",
)


def is_binary_file(file_name: str) -> bool:
    return file_name.lower().endswith(BINARY_EXTENSIONS)
