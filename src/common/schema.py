"""Common schemas for the API."""

from ninja import Schema


class VersionResponse(Schema):
    version: str


class ResponseMessage(Schema):
    message: str
