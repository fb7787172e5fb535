from pydantic import BaseModel, Field


class Checkpoint(BaseModel):
    name: str
    path: str | None = None
    size_bytes: int | None = None
    created_at: str | None = None


class CheckpointList(BaseModel):
    models: list[Checkpoint] = Field(default_factory=list)


class TrainingStartRequest(BaseModel):
    model_id: str
    dataset: str
    epochs: int = Field(default=1, ge=1)
    batch_size: int = Field(default=1, ge=1)
    learning_rate: float = Field(default=2e-4, gt=0)
    options: dict = Field(default_factory=dict)


class TrainingStartResponse(BaseModel):
    job_id: str
    status: str | None = None
    message: str | None = None
