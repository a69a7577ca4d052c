from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    username: str = ""
    password: str = ""
    upstream_credential: str = Field(
        default="",
        validation_alias=AliasChoices("upstreamCredential", "openaiApiKey", "upstream_credential"),
    )


class TranslateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    content: str = Field(default="", validation_alias=AliasChoices("content", "pageText"))
    target_language: str = Field(
        default="",
        validation_alias=AliasChoices("targetLanguage", "target_language"),
    )
    force: bool = False
