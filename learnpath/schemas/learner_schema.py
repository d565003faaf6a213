from pydantic import BaseModel, EmailStr

class TokenData(BaseModel):
    firebase_uid: str # 'uid' claim of the verified Firebase ID token
    email: EmailStr
