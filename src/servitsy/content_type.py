"""
=============================================================================
CONTENT-TYPE DETECTION
=============================================================================

Decides the Content-Type header of a served file, and whether the file
is TEXT (can be gzipped, gets a charset) or BINARY.

=============================================================================
TWO-STAGE CLASSIFIER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                   get_content_type(path, handle)                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   STAGE 1: BY NAME (no I/O)                                          │
    │   ──────────────────────────────────────────────────────────────     │
    │     "Style.CSS"  → ext "css"  → TEXT_TYPES map   → text/css          │
    │     "photo.png"  → ext "png"  → BIN_TYPES map    → image/png         │
    │     "main.rs"    → ext "rs"   → text ext list    → text/plain        │
    │     "app.exe"    → ext "exe"  → bin ext list     → octet-stream      │
    │     "LICENSE"    → no ext     → text file names  → text/plain        │
    │     ".npmrc"     → no ext     → text suffix "rc" → text/plain        │
    │     "data.xyz"   → unknown    → go to stage 2                        │
    │                                                                      │
    │   STAGE 2: BY CONTENT (needs an open file)                           │
    │   ──────────────────────────────────────────────────────────────     │
    │     read first 1500 bytes                                            │
    │       ├── starts with a BOM          → text/plain                    │
    │       ├── has a binary data byte     → application/octet-stream      │
    │       └── otherwise                  → text/plain                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The byte sniff follows the WHATWG mime-sniffing algorithm:
https://mimesniff.spec.whatwg.org/#sniffing-a-mislabeled-binary-resource

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Dict, FrozenSet, Optional


logger = logging.getLogger(__name__)

TEXT_DEFAULT = "text/plain"
BIN_DEFAULT = "application/octet-stream"

# How many bytes the content sniffer reads
SNIFF_SIZE = 1500


def _words(text: str) -> FrozenSet[str]:
    return frozenset(text.split())


# ─────────────────────────────────────────────────────────────────────────
# TEXT TYPES
# ─────────────────────────────────────────────────────────────────────────

TEXT_EXTENSION_MAP: Dict[str, str] = {
    "atom": "application/atom+xml",
    "cjs": "text/javascript",
    "css": "text/css",
    "csv": "text/csv",
    "htm": "text/html",
    "html": "text/html",
    "ics": "text/calendar",
    "js": "text/javascript",
    "json": "application/json",
    "json5": "text/plain",
    "jsonc": "text/plain",
    "jsonld": "application/ld+json",
    "map": "application/json",
    "md": "text/markdown",
    "mdown": "text/markdown",
    "mjs": "text/javascript",
    "rss": "application/rss+xml",
    "sql": "application/sql",
    "svg": "image/svg+xml",
    "text": "text/plain",
    "txt": "text/plain",
    "xhtml": "application/xhtml+xml",
    "xml": "application/xml",
}

# Loosely based on the npm "textextensions" list
TEXT_EXTENSIONS = _words("""
    ada adb ads as ascx asm asmx asp aspx astro atom
    bas bat bbcolors bdsgroup bdsproj bib
    c cbl cc cfc cfg cfm cfml cgi clj cls cmake cmd cnf cob coffee conf cpp cpt cpy crt cs cson csr ctl cxx
    dart dfm diff dof dpk dproj dtd
    eco ejs el emacs eml ent erb erl ex exs
    for fpp frm ftn
    go gpp gradle groovy groupproj grunit gtmpl
    h haml hbs hh hpp hrl hs hta htc hxx
    iced inc ini ino int itcl itk
    jade java jhtm jhtml js jsp jspx jsx
    latex less lhs liquid lisp log ls lsp lua
    m mak markdown mdwn mdx metadata mht mhtml mjs mk mkd mkdn mkdown ml mli mm mxml
    nfm nfo njk noon
    ops pas pasm patch pbxproj pch pem pg php pir pl pm pmc pod pot properties props ps1 pt pug py
    r rake rb rdoc resx rhtml rjs rlib rmd ron rs rst rtf rxml
    s sass scala scm scss sh shtml sls spec sql sqlite ss sss st strings sty styl stylus sub sv svc svelte
    t tcl tex textile tg tmpl toml tpl ts tsv tsx tt tt2 ttml txt
    v vb vbs vh vhd vhdl vim vue
    wxml wxss x-php xaml xht xs xsd xsl xslt
""")

TEXT_FILE_NAMES = _words("""
    .gitattributes .gitkeep .gitignore .gitmodules
    .htaccess .htpasswd
    .viminfo .vimrc
    changelog license readme
""")

TEXT_SUFFIXES = ("config", "file", "html", "ignore", "rc")

# ─────────────────────────────────────────────────────────────────────────
# BINARY TYPES
# ─────────────────────────────────────────────────────────────────────────

BIN_EXTENSION_MAP: Dict[str, str] = {
    "7z": "application/x-7z-compressed",
    "aac": "audio/aac",
    "apng": "image/apng",
    "aif": "audio/aiff",
    "aiff": "audio/aiff",
    "avi": "video/x-msvideo",
    "avif": "image/avif",
    "bmp": "image/bmp",
    "bz": "application/x-bzip",
    "bz2": "application/x-bzip2",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "epub": "application/epub+zip",
    "flac": "audio/flac",
    "gif": "image/gif",
    "gzip": "application/gzip",
    "gz": "application/gzip",
    "ico": "image/x-icon",
    "jpg": "image/jpg",
    "jpeg": "image/jpg",
    "jar": "application/zip",
    "jxl": "image/jxl",
    "jxr": "image/jxr",
    "mid": "audio/midi",
    "midi": "audio/midi",
    "mp3": "audio/mpeg",
    "mp4": "video/mp4",
    "mpeg": "video/mpeg",
    "ods": "application/vnd.oasis.opendocument.spreadsheet",
    "odt": "application/vnd.oasis.opendocument.text",
    "oga": "audio/ogg",
    "ogg": "audio/ogg",
    "ogv": "video/ogg",
    "opus": "audio/opus",
    "otf": "font/otf",
    "pdf": "application/pdf",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "png": "image/png",
    "rar": "application/vnd.rar",
    "rtf": "application/rtf",
    "tar": "application/x-tar",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "ttf": "font/ttf",
    "wav": "audio/wav",
    "weba": "audio/webm",
    "webm": "video/webm",
    "webp": "image/webp",
    "woff": "font/woff",
    "woff2": "font/woff2",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "yaml": "application/yaml",
    "yml": "application/yaml",
    "zip": "application/zip",
}

BIN_EXTENSIONS = _words("bin dng exe link pkg msi so")


@dataclass
class TypeResult:
    """
    Outcome of content-type detection.

    Attributes:
        group: "text", "bin" or "unknown".
        type: The MIME type.
        charset: Appended to text types only.
    """

    group: str = "unknown"
    type: str = BIN_DEFAULT
    charset: str = "UTF-8"

    def text(self, mime_type: str = TEXT_DEFAULT) -> "TypeResult":
        self.group = "text"
        self.type = mime_type
        return self

    def bin(self, mime_type: str = BIN_DEFAULT) -> "TypeResult":
        self.group = "bin"
        self.type = mime_type
        return self

    def unknown(self) -> "TypeResult":
        self.group = "unknown"
        self.type = BIN_DEFAULT
        return self

    @property
    def is_text(self) -> bool:
        return self.group == "text"

    def __str__(self) -> str:
        """
        Header value for this type.

            text/html; charset=UTF-8     (text group)
            image/png                    (bin and unknown groups)
        """
        if self.group == "text":
            suffix = f"; charset={self.charset}" if self.charset else ""
            return f"{self.type or TEXT_DEFAULT}{suffix}"
        return self.type or BIN_DEFAULT


def type_for_file_path(file_path: str, charset: str = "UTF-8") -> TypeResult:
    """
    Stage 1: classify a file by its name only.

    Returns a result in the "unknown" group when the name says nothing.
    """
    result = TypeResult(charset=charset)

    name = os.path.basename(file_path).lower() if file_path else ""
    ext = os.path.splitext(name)[1][1:] if name else ""

    if ext:
        if ext in TEXT_EXTENSION_MAP:
            return result.text(TEXT_EXTENSION_MAP[ext])
        if ext in BIN_EXTENSION_MAP:
            return result.bin(BIN_EXTENSION_MAP[ext])
        if ext in TEXT_EXTENSIONS:
            return result.text()
        if ext in BIN_EXTENSIONS:
            return result.bin()
    elif name:
        if name in TEXT_FILE_NAMES or name.endswith(TEXT_SUFFIXES):
            return result.text()

    return result.unknown()


def type_for_file(handle: BinaryIO, charset: str = "UTF-8") -> TypeResult:
    """
    Stage 2: classify a file by sniffing its first bytes.

    Reads from the start of the file; read errors give an "unknown" result.
    """
    result = TypeResult(charset=charset)
    try:
        handle.seek(0)
        header = handle.read(SNIFF_SIZE)
    except (OSError, ValueError) as e:
        logger.debug(f"Could not sniff file content: {e}")
        return result.unknown()
    if is_bin_header(header):
        return result.bin()
    return result.text()


def get_content_type(
    path: Optional[str] = None,
    handle: Optional[BinaryIO] = None,
    charset: str = "UTF-8",
) -> TypeResult:
    """
    Classify a file, by name first, then by content if a handle is given.

    Example:
        with open("LICENSE", "rb") as f:
            str(get_content_type("LICENSE", f))  # 'text/plain; charset=UTF-8'
    """
    if path:
        result = type_for_file_path(path, charset)
        if result.group != "unknown":
            return result
    if handle is not None:
        return type_for_file(handle, charset)
    return TypeResult(charset=charset).unknown()


def is_bin_header(data: bytes) -> bool:
    """
    Check if the first bytes of a file look like binary data.

    A byte-order mark means text. Otherwise, any binary data byte in the
    first 2000 bytes means binary.
    """
    if data[:2] in (b"\xfe\xff", b"\xff\xfe") or data[:3] == b"\xef\xbb\xbf":
        return False
    limit = min(len(data), 2000)
    return any(is_bin_data_byte(byte) for byte in data[:limit])


def is_bin_data_byte(byte: int) -> bool:
    """https://mimesniff.spec.whatwg.org/#binary-data-byte"""
    return (
        0x00 <= byte <= 0x08
        or byte == 0x0B
        or 0x0E <= byte <= 0x1A
        or 0x1C <= byte <= 0x1F
    )
