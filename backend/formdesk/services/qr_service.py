import base64
import io
from urllib.parse import quote

import qrcode

from formdesk.core.templates import templates
from formdesk.schemas.form import Form


class QRCodeService:
    @staticmethod
    def build_form_url(base_url: str, slug: str, source: str = "qr") -> str:
        url = f"{base_url.rstrip('/')}/f/{quote(slug)}"
        if source:
            url = f"{url}?source={source}"
        return url

    @staticmethod
    def generate_qr_data_url(url: str) -> str:
        img = qrcode.make(url)
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        encoded = base64.b64encode(buf.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def render_print_page(self, form: Form, form_url: str) -> str:
        template = templates.env.get_template("qr_print.html")
        return template.render(
            form=form,
            form_url=form_url,
            qr_code=self.generate_qr_data_url(form_url),
        )
