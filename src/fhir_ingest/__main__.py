"""Allow ``python -m fhir_ingest`` to run the CLI; with no command it starts the worker."""

import sys

from fhir_ingest.cli import app

app(args=sys.argv[1:] or ["run"], prog_name="fhir-ingest")
