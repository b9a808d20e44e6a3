import logging
from datetime import date, datetime
from fpdf import FPDF
from fpdf.enums import XPos, YPos

logger = logging.getLogger(__name__)

MESES = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]

# The core Helvetica font only covers Latin-1
LATIN1_REPLACEMENTS = str.maketrans({
    "‘": "'", "’": "'", "‚": "'",
    "“": '"', "”": '"', "„": '"',
    "–": "-", "—": "-", "−": "-",
    "•": "*", "…": "...", "€": "EUR",
    " ": " ",
})


def latin1_text(value):
    """Map typographic characters to Latin-1 and replace anything else with '?'"""
    text = str(value).translate(LATIN1_REPLACEMENTS)
    return text.encode("latin-1", "replace").decode("latin-1")


def format_currency(value):
    """Formata um valor em reais (R$ 1.234,56)"""
    formatted = f"{float(value or 0):,.2f}"
    return "R$ " + formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def format_number(value, decimals=0):
    formatted = f"{float(value or 0):,.{decimals}f}"
    return formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def format_date(value):
    """Formata uma data em dd/mm/aaaa"""
    if not value:
        return "-"
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    try:
        return datetime.fromisoformat(str(value)).strftime("%d/%m/%Y")
    except ValueError:
        return str(value)


def describe_period(mes=None, ano=None):
    if mes and ano:
        return f"{MESES[int(mes) - 1]} de {ano}"
    if ano:
        return f"Ano {ano}"
    return "Todos os pedidos"


class BasePDF(FPDF):
    """
    Cabeçalho e rodapé comuns aos relatórios da Quatrelati
    """
    title_text = ""

    def __init__(self, orientation="P"):
        super().__init__(orientation=orientation, format="A4")
        self.set_margin(12)
        self.set_auto_page_break(auto=True, margin=15)
        self.generated_at = datetime.now().strftime("%d/%m/%Y %H:%M")
        self.subtitle_lines = []

    def cell(self, w=None, h=None, text="", *args, **kwargs):
        return super().cell(w, h, latin1_text(text), *args, **kwargs)

    def multi_cell(self, w, h=None, text="", *args, **kwargs):
        return super().multi_cell(w, h, latin1_text(text), *args, **kwargs)

    def header(self):
        self.set_text_color(18, 78, 166)
        self.set_font("Helvetica", "B", 16)
        self.cell(60, 10, "QUATRELATI", align="L")
        self.set_text_color(31, 41, 55)
        self.set_font("Helvetica", "B", 13)
        self.cell(0, 10, self.title_text, align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font("Helvetica", "", 9)
        self.set_text_color(107, 114, 128)
        for line in self.subtitle_lines:
            self.cell(0, 5, line, align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_draw_color(209, 213, 219)
        self.line(self.l_margin, self.get_y() + 2, self.w - self.r_margin, self.get_y() + 2)
        self.ln(6)
        self.set_text_color(0)

    def footer(self):
        self.set_y(-12)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(107, 114, 128)
        self.cell(0, 8, f"Gerado em {self.generated_at}", align="L")
        self.cell(0, 8, f"Página {self.page_no()}/{{nb}}", align="R")


class PedidosReportPDF(BasePDF):
    """
    Relatório em paisagem com a lista filtrada de pedidos
    """
    title_text = "Relatório de Pedidos"

    HEADERS = ["Pedido", "Data", "Cliente", "N.F.", "Peso", "Cx", "R$ Unit.", "Total", "Entrega", "Status"]
    WIDTHS = [22, 22, 80, 22, 25, 15, 22, 30, 22, 23]
    ALIGNS = ["L", "C", "L", "C", "R", "R", "R", "R", "C", "C"]

    def __init__(self, report_data):
        super().__init__(orientation="L")
        self.report = report_data
        self.subtitle_lines = [
            describe_period(report_data.get("mes"), report_data.get("ano")),
            f"Vendedor: {report_data['vendedor_nome']}" if report_data.get("vendedor_nome") else "Lista Geral",
        ]
        self.add_page()

    def add_summary_blocks(self):
        """Blocos A ENTREGAR / ENTREGUE"""
        totais = self.report.get("totais", {})
        block_width = (self.w - self.l_margin - self.r_margin - 10) / 2
        y = self.get_y()

        blocks = [
            ("A ENTREGAR", "pendentes", "pendente", (255, 251, 235), (245, 158, 11)),
            ("ENTREGUE", "entregues", "entregue", (240, 253, 244), (34, 197, 94)),
        ]
        for index, (label, count_key, suffix, fill, border) in enumerate(blocks):
            x = self.l_margin + index * (block_width + 10)
            self.set_fill_color(*fill)
            self.set_draw_color(*border)
            self.rect(x, y, block_width, 14, style="DF")
            self.set_xy(x + 3, y + 1.5)
            self.set_font("Helvetica", "B", 9)
            self.cell(block_width / 2, 5, label, align="L")
            self.set_font("Helvetica", "B", 10)
            self.cell(block_width / 2 - 6, 5, format_currency(totais.get(f"valor_{suffix}")), align="R")
            self.set_xy(x + 3, y + 7)
            self.set_font("Helvetica", "", 8)
            self.cell(
                block_width - 6, 5,
                f"{totais.get(count_key, 0)} pedidos  |  "
                f"{format_number(totais.get(f'peso_{suffix}'))} kg  |  "
                f"{format_number(totais.get(f'unidades_{suffix}'))} cx",
                align="L"
            )
        self.set_xy(self.l_margin, y + 20)

    def add_table_header(self):
        self.set_font("Helvetica", "B", 8)
        self.set_draw_color(55, 65, 81)
        for header, width, align in zip(self.HEADERS, self.WIDTHS, self.ALIGNS):
            self.cell(width, 7, header, border="B", align=align)
        self.ln()

    def add_rows(self):
        self.set_font("Helvetica", "", 8)
        today = date.today()
        for pedido in self.report.get("pedidos", []):
            if self.get_y() > self.h - 25:
                self.add_page()
                self.add_table_header()
                self.set_font("Helvetica", "", 8)

            data_entrega = pedido.get("data_entrega")
            if pedido.get("entregue"):
                status_text = "Entregue"
            elif data_entrega and data_entrega < today:
                status_text = "Atrasado"
            else:
                status_text = "Pendente"

            values = [
                pedido.get("numero_pedido", ""),
                format_date(pedido.get("data_pedido")),
                (pedido.get("cliente_nome") or "-")[:45],
                pedido.get("nf") or "-",
                f"{format_number(pedido.get('peso_kg'))} kg",
                str(pedido.get("quantidade_caixas") or 0),
                format_number(pedido.get("preco_unitario"), 2),
                format_currency(pedido.get("total")),
                format_date(data_entrega),
                status_text,
            ]
            for value, width, align in zip(values, self.WIDTHS, self.ALIGNS):
                self.cell(width, 6, value, border="B", align=align)
            self.ln()

    def add_totals(self):
        totais = self.report.get("totais", {})
        self.ln(4)
        self.set_font("Helvetica", "B", 9)
        self.cell(
            0, 7,
            f"TOTAL GERAL: {totais.get('quantidade_pedidos', 0)} pedidos  |  "
            f"{format_number(totais.get('peso_total'))} kg  |  "
            f"{format_number(totais.get('unidades_total'))} cx  |  "
            f"{format_currency(totais.get('valor_total'))}",
            align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT
        )

    def generate(self):
        self.alias_nb_pages()
        self.add_summary_blocks()
        self.add_table_header()
        self.add_rows()
        self.add_totals()
        return bytes(self.output())


class PedidoPDF(BasePDF):
    """
    Documento de um único pedido com seus itens
    """

    def __init__(self, pedido_data):
        super().__init__(orientation="P")
        self.pedido = pedido_data
        self.title_text = f"Pedido {pedido_data.get('numero_pedido', '')}"
        self.subtitle_lines = [f"Data do pedido: {format_date(pedido_data.get('data_pedido'))}"]
        self.add_page()

    def add_label_value(self, label, value):
        self.set_font("Helvetica", "B", 10)
        self.cell(45, 6, label)
        self.set_font("Helvetica", "", 10)
        self.cell(0, 6, str(value if value not in (None, "") else "-"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def add_client_info(self):
        """Dados do cliente"""
        self.set_font("Helvetica", "B", 12)
        self.cell(0, 8, "CLIENTE", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.add_label_value("Nome:", self.pedido.get("cliente_nome"))
        self.add_label_value("CNPJ/CPF:", self.pedido.get("cliente_cnpj"))
        self.add_label_value("Telefone:", self.pedido.get("cliente_telefone"))
        self.add_label_value("Endereço de entrega:", self.pedido.get("cliente_endereco_entrega"))
        self.ln(4)

    def add_order_details(self):
        self.set_font("Helvetica", "B", 12)
        self.cell(0, 8, "PEDIDO", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.add_label_value("Nota fiscal:", self.pedido.get("nf"))
        self.add_label_value("Entrega prevista:", format_date(self.pedido.get("data_entrega")))
        self.add_label_value("Horário recebimento:", self.pedido.get("horario_recebimento"))
        self.add_label_value("Vendedor:", self.pedido.get("vendedor_nome"))
        status_text = "Entregue" if self.pedido.get("entregue") else "Pendente"
        if self.pedido.get("entregue") and self.pedido.get("data_entrega_real"):
            status_text += f" em {format_date(self.pedido.get('data_entrega_real'))}"
        self.add_label_value("Status:", status_text)
        self.ln(4)

    def add_items(self):
        widths = [80, 25, 30, 25, 30]
        headers = ["Produto", "Caixas", "Peso (kg)", "R$/kg", "Subtotal"]
        aligns = ["L", "R", "R", "R", "R"]
        self.set_font("Helvetica", "B", 9)
        for header, width, align in zip(headers, widths, aligns):
            self.cell(width, 7, header, border=1, align=align)
        self.ln()
        self.set_font("Helvetica", "", 9)
        for item in self.pedido.get("itens", []):
            values = [
                (item.get("produto_nome") or "-")[:45],
                str(item.get("quantidade_caixas") or 0),
                format_number(item.get("peso_kg"), 2),
                format_number(item.get("preco_unitario"), 2),
                format_currency(item.get("subtotal")),
            ]
            for value, width, align in zip(values, widths, aligns):
                self.cell(width, 7, value, border=1, align=align)
            self.ln()
        self.ln(3)

    def add_totals(self):
        self.set_font("Helvetica", "B", 10)
        self.cell(150, 7, "Total de caixas:", align="R")
        self.cell(0, 7, str(self.pedido.get("quantidade_caixas") or 0), align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.cell(150, 7, "Peso total:", align="R")
        self.cell(0, 7, f"{format_number(self.pedido.get('peso_kg'), 2)} kg", align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        if self.pedido.get("preco_descarga_pallet"):
            self.cell(150, 7, "Descarga por pallet:", align="R")
            self.cell(0, 7, format_currency(self.pedido.get("preco_descarga_pallet")), align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font("Helvetica", "B", 12)
        self.cell(150, 9, "Total:", align="R")
        self.cell(0, 9, format_currency(self.pedido.get("total")), align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def add_notes(self):
        if self.pedido.get("observacoes"):
            self.ln(4)
            self.set_font("Helvetica", "B", 10)
            self.cell(0, 7, "Observações:", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            self.set_font("Helvetica", "", 10)
            self.multi_cell(0, 6, self.pedido["observacoes"])

    def generate(self):
        self.alias_nb_pages()
        self.add_client_info()
        self.add_order_details()
        self.add_items()
        self.add_totals()
        self.add_notes()
        return bytes(self.output())


def generate_pedidos_report_pdf(report_data):
    """
    Gera o PDF da lista de pedidos filtrada

    Args:
        report_data: dict com pedidos, totais, mes, ano e vendedor_nome

    Returns:
        bytes: Conteúdo do PDF
    """
    try:
        return PedidosReportPDF(report_data).generate()
    except Exception as e:
        logger.error(f"Error generating pedidos report PDF: {str(e)}")
        raise


def generate_pedido_pdf(pedido_data):
    """Gera o PDF de um pedido"""
    try:
        return PedidoPDF(pedido_data).generate()
    except Exception as e:
        logger.error(f"Error generating pedido PDF: {str(e)}")
        raise
