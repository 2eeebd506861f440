from rest_framework.parsers import JSONParser


class CloudEventParser(JSONParser):
    """Structured-mode CloudEvents are JSON under their own media type."""

    media_type = "application/cloudevents+json"
