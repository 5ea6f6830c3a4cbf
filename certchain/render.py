import base64
from io import BytesIO

import qrcode
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas


# ---------------- QR ----------------
def qr_png(data: str) -> bytes:
    img = qrcode.make(data)
    buf = BytesIO()
    img.save(buf)
    return buf.getvalue()


def qr_data_url(data: str) -> str:
    encoded = base64.b64encode(qr_png(data)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


# ---------------- PDF ----------------
def certificate_pdf(record, verification_url: str) -> bytes:
    buffer = BytesIO()
    page_size = landscape(A4)
    width, height = page_size
    pdf = canvas.Canvas(buffer, pagesize=page_size)
    fields = record.fields
    centre = width / 2

    pdf.setTitle(f"Certificate {record.cert_id}")

    pdf.setFont("Helvetica-Bold", 34)
    pdf.drawCentredString(centre, height - 90, "Certificate of Completion")

    pdf.setFont("Helvetica", 18)
    pdf.drawCentredString(centre, height - 150, "This certifies that")

    pdf.setFont("Helvetica-Bold", 26)
    pdf.setFillColorRGB(0.2, 0.25, 0.7)
    pdf.drawCentredString(centre, height - 195, fields.student_name)
    pdf.setFillColorRGB(0, 0, 0)

    pdf.setFont("Helvetica", 16)
    pdf.drawCentredString(centre, height - 235, "has successfully completed")

    pdf.setFont("Helvetica-Bold", 22)
    pdf.setFillColorRGB(0.2, 0.25, 0.7)
    pdf.drawCentredString(centre, height - 275, fields.degree)
    pdf.setFillColorRGB(0, 0, 0)

    pdf.setFont("Helvetica", 14)
    pdf.drawCentredString(centre, height - 315, f"From {fields.institution}")
    pdf.drawCentredString(centre, height - 340, f"Student ID: {fields.student_id}   Grade: {fields.grade}")
    pdf.drawCentredString(centre, height - 365, f"Date: {fields.issue_date}")

    pdf.setFont("Helvetica", 11)
    pdf.drawCentredString(centre, 110, f"Certificate ID: {record.cert_id}")
    pdf.drawCentredString(centre, 92, f"Issuer: {record.issuer}   Status: {record.status.value}")
    pdf.setFont("Helvetica", 8)
    pdf.drawCentredString(centre, 76, f"Hash: {record.hash}")

    qr = ImageReader(BytesIO(qr_png(verification_url)))
    pdf.drawImage(qr, width - 150, 40, width=100, height=100)
    pdf.drawCentredString(width - 100, 30, "Scan to verify")

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
