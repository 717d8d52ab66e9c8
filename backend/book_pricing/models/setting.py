from sqlmodel import SQLModel, Field


class Setting(SQLModel, table=True):
    __tablename__ = "pricing_settings"

    # fits "pricing_matrix_" + base64 of a 100-character name of 4-byte characters
    setting_key: str = Field(primary_key=True, max_length=600)
    # JSON text; decoding is the caller's concern
    setting_value: str
