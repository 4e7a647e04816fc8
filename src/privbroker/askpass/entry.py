"""The askpass executable.

sudo runs the program named by SUDO_ASKPASS and reads one line from its
stdout as the password. Contract:

- confirmed: the password exactly as typed plus a newline on stdout, exit 0
- cancelled: nothing on stdout, exit 255
- no display / no toolkit: one ``PROMPT_UNAVAILABLE_TAG`` line on stderr,
  exit 2

sudo passes its own prompt text as an argument; it is ignored, the dialog
text comes from the locale variant. stdin is never read.
"""
import logging
import sys
from functools import partial
from typing import Optional, TextIO

from ..locales import detect_locale
from ..utils.logging_config import setup_askpass_logging
from .provider import PROMPT_UNAVAILABLE_TAG, DialogUnavailable, PromptCancelled, PromptProvider

logger = logging.getLogger(__name__)

ASKPASS_OK = 0
ASKPASS_NO_DISPLAY = 2
ASKPASS_CANCELLED = 255


def askpass_main(locale: Optional[str] = None,
                 provider: Optional[PromptProvider] = None,
                 stdout: Optional[TextIO] = None,
                 stderr: Optional[TextIO] = None) -> int:
    """Run one prompt and return the process exit status."""
    out = sys.stdout if stdout is None else stdout
    err = sys.stderr if stderr is None else stderr
    provider = provider or PromptProvider()
    locale = locale or detect_locale()

    try:
        credential = provider.prompt(locale)
    except PromptCancelled:
        logger.debug("Password dialog cancelled")
        return ASKPASS_CANCELLED
    except DialogUnavailable as e:
        err.write(f"{PROMPT_UNAVAILABLE_TAG}: {e}\n")
        err.flush()
        return ASKPASS_NO_DISPLAY

    out.write(credential.reveal() + '\n')
    out.flush()
    del credential
    return ASKPASS_OK


def run(locale: Optional[str] = None) -> None:
    setup_askpass_logging()
    sys.exit(askpass_main(locale))


main = partial(run, None)
main_en = partial(run, 'en')
main_de = partial(run, 'de')
main_es = partial(run, 'es')
main_fr = partial(run, 'fr')
main_it = partial(run, 'it')
main_pt_br = partial(run, 'pt-BR')
main_sv = partial(run, 'sv')
main_zh_cn = partial(run, 'zh-CN')
main_zh_tw = partial(run, 'zh-TW')
main_ko = partial(run, 'ko')


if __name__ == "__main__":
    main()
