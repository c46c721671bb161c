"""
Request bodies for the JSON API.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class PackageIn(BaseModel):
    id: Optional[str] = Field(None, alias="_id", description="Existing package id, kept on edit")
    name: str
    description: Optional[str] = None
    actualPrice: Optional[float] = None
    salePrice: Optional[float] = None
    features: List[str] = []
    processingDays: Optional[int] = Field(None, description="Defaults to 7")

    model_config = {"populate_by_name": True}


class ServiceIn(BaseModel):
    category: str
    name: str
    hsncode: str
    description: Optional[str] = None
    currency: Optional[str] = None
    gstRate: Optional[float] = None
    isActive: bool = True
    hasStaticPage: bool = False
    packages: List[PackageIn] = []
    requiredDocuments: List[str] = []


class ServiceUpdate(ServiceIn):
    extensionDays: int = Field(0, ge=0, description="Extra days added to every open order's due date")


class EmployeeCreate(BaseModel):
    name: str
    email: str
    password: str
    servicesHandled: List[str]
    L1EmpCode: Optional[str] = None
    designation: Optional[str] = None
    mobile: Optional[str] = None


class ManagerCreate(BaseModel):
    name: str
    email: str
    password: str
    mobile: Optional[str] = None


class CustomerRegister(BaseModel):
    name: str
    email: str
    password: str
    mobile: Optional[str] = None


class AssignRequest(BaseModel):
    customerId: Optional[str] = None
    serviceId: Optional[str] = None
    orderId: Optional[str] = None
    employeeId: str


class ActiveFlag(BaseModel):
    isActive: bool


class StatusUpdate(BaseModel):
    status: str


class LeadCreate(BaseModel):
    name: str
    email: str
    mobile: str
    serviceId: str
    message: Optional[str] = None
    source: Literal["website", "flexfunneli", "referral", "other"] = "website"


class LeadAssign(BaseModel):
    employeeId: str


class LeadDecline(BaseModel):
    reason: Optional[str] = None


class LeadSendBack(BaseModel):
    note: Optional[str] = None


class PaymentDetails(BaseModel):
    packageId: Optional[str] = None
    amount: Optional[float] = None
    method: Optional[str] = None
    reference: Optional[str] = None
    isInterstate: bool = False


class LeadConvert(BaseModel):
    paymentDetails: PaymentDetails = PaymentDetails()


class ReviewDecision(BaseModel):
    decision: Literal["approved", "rejected"]
    note: Optional[str] = None


class DelayReason(BaseModel):
    reason: str


class DocumentIn(BaseModel):
    filename: str
    path: str
    originalName: Optional[str] = None
    mimetype: Optional[str] = None
    size: int = 0


class DocumentUpload(BaseModel):
    documents: List[DocumentIn]


class QueryCreate(BaseModel):
    query: str
    attachments: List[dict] = []


class QueryReply(BaseModel):
    response: str
    resolve: bool = False


class FeedbackCreate(BaseModel):
    feedback: str = ""
    rating: int = Field(..., ge=1, le=5)


class PaymentSuccess(BaseModel):
    serviceId: str
    packageId: Optional[str] = None
    amount: Optional[float] = None
    method: Optional[str] = None
    reference: str
    isInterstate: bool = False


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    lastname: Optional[str] = None
    username: Optional[str] = None
    mobile: Optional[str] = None
    dob: Optional[str] = None
    gender: Optional[str] = None
    pan: Optional[str] = None
    gst: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postalCode: Optional[str] = None
    natureEmployment: Optional[str] = None
    annualIncome: Optional[str] = None
    education: Optional[str] = None
    certifications: Optional[str] = None
    institute: Optional[str] = None
    completionDate: Optional[str] = None


class MessageFile(BaseModel):
    fileUrl: str
    fileName: Optional[str] = None
    fileType: Optional[str] = None


class MessageCreate(BaseModel):
    recipientId: str
    content: str
    service: str
    orderId: Optional[str] = None
    files: List[MessageFile] = []


class MessageReply(BaseModel):
    replyContent: str
    files: List[MessageFile] = []
