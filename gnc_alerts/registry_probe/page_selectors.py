# File: registry_probe/page_selectors.py
DOMAIN_INPUT = "#dominio"
SUBMIT_BUTTON = "#consulta-op"

RESULT_ROWS = "tbody tr"
RESULT_CELLS = "tbody tr td"
PAGE_BODY = "body"

# Message boxes the registry uses for "no record" / validation notices.
NOTICE_BOXES = ".alert, .error, .mensaje, .message, #mensaje, #msg, .text-danger"
