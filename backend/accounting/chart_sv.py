# accounting/chart_sv.py
"""
Standard chart of accounts for El Salvador.

Codes follow the national classification: one digit for the class,
two for the group, four for the account and six for the sub-account.
A code's parent is the longest listed code that prefixes it, so the
tree is derived from the codes alone (see ``parent_code``).
"""

import logging

from django.db import transaction

from accounting.models import Account
from accounting.write_barrier import bootstrap_writes_allowed


logger = logging.getLogger(__name__)

# (code, name, account_type)
SV_CHART_OF_ACCOUNTS = (
    # 1 - Assets
    ("1", "ACTIVO", "ASSET"),
    ("11", "ACTIVO CORRIENTE", "ASSET"),
    ("1101", "Efectivo y Equivalentes", "ASSET"),
    ("110101", "Caja General", "ASSET"),
    ("110102", "Caja Chica", "ASSET"),
    ("110103", "Bancos", "ASSET"),
    ("1102", "Inversiones Temporales", "ASSET"),
    ("110201", "Depósitos a Plazo", "ASSET"),
    ("1103", "Cuentas por Cobrar Comerciales", "ASSET"),
    ("110301", "Clientes", "ASSET"),
    ("110302", "Documentos por Cobrar", "ASSET"),
    ("110303", "Provisión para Cuentas Incobrables", "ASSET"),
    ("1104", "Cuentas por Cobrar No Comerciales", "ASSET"),
    ("110401", "Anticipos a Proveedores", "ASSET"),
    ("110402", "Préstamos a Empleados", "ASSET"),
    ("110403", "IVA - Crédito Fiscal", "ASSET"),
    ("110404", "Pago a Cuenta ISR", "ASSET"),
    ("110405", "Retenciones de IVA (por cobrar)", "ASSET"),
    ("1105", "Inventarios", "ASSET"),
    ("110501", "Inventario de Mercaderías", "ASSET"),
    ("110502", "Inventario de Materias Primas", "ASSET"),
    ("110503", "Inventario de Productos en Proceso", "ASSET"),
    ("110504", "Inventario de Productos Terminados", "ASSET"),
    ("1106", "Gastos Pagados por Anticipado", "ASSET"),
    ("110601", "Seguros Pagados por Anticipado", "ASSET"),
    ("110602", "Alquileres Pagados por Anticipado", "ASSET"),
    ("12", "ACTIVO NO CORRIENTE", "ASSET"),
    ("1201", "Propiedad, Planta y Equipo", "ASSET"),
    ("120101", "Terrenos", "ASSET"),
    ("120102", "Edificios", "ASSET"),
    ("120103", "Mobiliario y Equipo de Oficina", "ASSET"),
    ("120104", "Equipo de Transporte", "ASSET"),
    ("120105", "Maquinaria y Equipo Industrial", "ASSET"),
    ("120106", "Equipo de Computación", "ASSET"),
    ("120107", "Herramientas", "ASSET"),
    ("1202", "Depreciación Acumulada", "ASSET"),
    ("120201", "Depreciación Acum. de Edificios", "ASSET"),
    ("120202", "Depreciación Acum. de Mob. y Equipo", "ASSET"),
    ("120203", "Depreciación Acum. de Eq. Transporte", "ASSET"),
    ("120204", "Depreciación Acum. de Maquinaria", "ASSET"),
    ("120205", "Depreciación Acum. de Eq. Computación", "ASSET"),
    ("1203", "Activos Intangibles", "ASSET"),
    ("120301", "Marcas y Patentes", "ASSET"),
    ("120302", "Licencias de Software", "ASSET"),
    ("120303", "Amortización Acumulada de Intangibles", "ASSET"),

    # 2 - Liabilities
    ("2", "PASIVO", "LIABILITY"),
    ("21", "PASIVO CORRIENTE", "LIABILITY"),
    ("2101", "Cuentas por Pagar Comerciales", "LIABILITY"),
    ("210101", "Proveedores Locales", "LIABILITY"),
    ("210102", "Proveedores del Exterior", "LIABILITY"),
    ("210103", "Documentos por Pagar", "LIABILITY"),
    ("2102", "Obligaciones Financieras a Corto Plazo", "LIABILITY"),
    ("210201", "Préstamos Bancarios a Corto Plazo", "LIABILITY"),
    ("210202", "Porción Corriente de Deuda a Largo Plazo", "LIABILITY"),
    ("2103", "Impuestos por Pagar", "LIABILITY"),
    ("210301", "IVA - Débito Fiscal", "LIABILITY"),
    ("210302", "IVA por Pagar", "LIABILITY"),
    ("210303", "Impuesto sobre la Renta por Pagar", "LIABILITY"),
    ("210304", "Retenciones de ISR por Pagar", "LIABILITY"),
    ("210305", "Impuesto Municipal por Pagar", "LIABILITY"),
    ("2104", "Obligaciones Laborales", "LIABILITY"),
    ("210401", "Sueldos por Pagar", "LIABILITY"),
    ("210402", "ISSS Patronal por Pagar", "LIABILITY"),
    ("210403", "AFP Patronal por Pagar", "LIABILITY"),
    ("210404", "ISSS Laboral (retenido)", "LIABILITY"),
    ("210405", "AFP Laboral (retenido)", "LIABILITY"),
    ("210406", "ISR Retenido a Empleados", "LIABILITY"),
    ("210407", "Aguinaldo por Pagar", "LIABILITY"),
    ("210408", "Vacaciones por Pagar", "LIABILITY"),
    ("210409", "Indemnización por Pagar", "LIABILITY"),
    ("210410", "INSAFORP por Pagar", "LIABILITY"),
    ("2105", "Otras Cuentas por Pagar", "LIABILITY"),
    ("210501", "Retenciones por Pagar Diversas", "LIABILITY"),
    ("210502", "Anticipos de Clientes", "LIABILITY"),
    ("22", "PASIVO NO CORRIENTE", "LIABILITY"),
    ("2201", "Préstamos Bancarios a Largo Plazo", "LIABILITY"),
    ("2202", "Hipotecas por Pagar", "LIABILITY"),
    ("2203", "Provisiones a Largo Plazo", "LIABILITY"),

    # 3 - Equity
    ("3", "PATRIMONIO", "EQUITY"),
    ("31", "CAPITAL SOCIAL", "EQUITY"),
    ("3101", "Capital Social Mínimo", "EQUITY"),
    ("3102", "Capital Social Variable", "EQUITY"),
    ("32", "RESERVAS", "EQUITY"),
    ("3201", "Reserva Legal", "EQUITY"),
    ("3202", "Reservas Voluntarias", "EQUITY"),
    ("33", "RESULTADOS", "EQUITY"),
    ("3301", "Utilidades de Ejercicios Anteriores", "EQUITY"),
    ("3302", "Utilidad del Ejercicio", "EQUITY"),
    ("3303", "Pérdidas de Ejercicios Anteriores", "EQUITY"),
    ("3304", "Pérdida del Ejercicio", "EQUITY"),
    ("34", "SUPERÁVIT POR REVALUACIÓN", "EQUITY"),

    # 4 - Revenue
    ("4", "INGRESOS", "REVENUE"),
    ("41", "INGRESOS DE OPERACIÓN", "REVENUE"),
    ("4101", "Ventas", "REVENUE"),
    ("410101", "Ventas Gravadas", "REVENUE"),
    ("410102", "Ventas Exentas", "REVENUE"),
    ("410103", "Ventas No Sujetas", "REVENUE"),
    ("4102", "Devoluciones y Rebajas sobre Ventas", "REVENUE"),
    ("4103", "Descuentos sobre Ventas", "REVENUE"),
    ("42", "INGRESOS NO OPERACIONALES", "REVENUE"),
    ("4201", "Intereses Ganados", "REVENUE"),
    ("4202", "Ganancia en Venta de Activos", "REVENUE"),
    ("4203", "Otros Ingresos", "REVENUE"),

    # 5 - Expenses
    ("5", "COSTOS Y GASTOS", "EXPENSE"),
    ("51", "COSTO DE VENTAS", "EXPENSE"),
    ("5101", "Costo de Mercadería Vendida", "EXPENSE"),
    ("5102", "Costo de Producción", "EXPENSE"),
    ("52", "GASTOS DE OPERACIÓN", "EXPENSE"),
    ("5201", "Gastos de Administración", "EXPENSE"),
    ("520101", "Sueldos y Salarios - Administración", "EXPENSE"),
    ("520102", "ISSS Patronal - Administración", "EXPENSE"),
    ("520103", "AFP Patronal - Administración", "EXPENSE"),
    ("520104", "INSAFORP - Administración", "EXPENSE"),
    ("520105", "Aguinaldo - Administración", "EXPENSE"),
    ("520106", "Vacaciones - Administración", "EXPENSE"),
    ("520107", "Indemnización - Administración", "EXPENSE"),
    ("520108", "Alquiler - Administración", "EXPENSE"),
    ("520109", "Servicios Básicos - Administración", "EXPENSE"),
    ("520110", "Papelería y Útiles", "EXPENSE"),
    ("520111", "Depreciación - Administración", "EXPENSE"),
    ("520112", "Honorarios Profesionales", "EXPENSE"),
    ("520113", "Seguros - Administración", "EXPENSE"),
    ("520114", "Mantenimiento y Reparaciones", "EXPENSE"),
    ("520115", "Viáticos y Transporte", "EXPENSE"),
    ("520116", "Amortización de Intangibles", "EXPENSE"),
    ("520117", "Gastos Varios de Administración", "EXPENSE"),
    ("5202", "Gastos de Venta", "EXPENSE"),
    ("520201", "Sueldos y Salarios - Ventas", "EXPENSE"),
    ("520202", "Comisiones sobre Ventas", "EXPENSE"),
    ("520203", "Publicidad y Propaganda", "EXPENSE"),
    ("520204", "Envíos y Fletes", "EXPENSE"),
    ("520205", "ISSS Patronal - Ventas", "EXPENSE"),
    ("520206", "AFP Patronal - Ventas", "EXPENSE"),
    ("520207", "Aguinaldo - Ventas", "EXPENSE"),
    ("520208", "Depreciación - Ventas", "EXPENSE"),
    ("520209", "Gastos Varios de Ventas", "EXPENSE"),
    ("53", "GASTOS NO OPERACIONALES", "EXPENSE"),
    ("5301", "Gastos Financieros", "EXPENSE"),
    ("530101", "Intereses Bancarios", "EXPENSE"),
    ("530102", "Comisiones Bancarias", "EXPENSE"),
    ("530103", "Diferencial Cambiario", "EXPENSE"),
    ("5302", "Pérdida en Venta de Activos", "EXPENSE"),
    ("5303", "Cuentas Incobrables", "EXPENSE"),
    ("5304", "Otros Gastos No Operacionales", "EXPENSE"),
    ("54", "GASTOS DE IMPUESTOS", "EXPENSE"),
    ("5401", "Impuesto sobre la Renta Corriente", "EXPENSE"),
    ("5402", "Impuesto sobre la Renta Diferido", "EXPENSE"),
    ("5403", "Impuesto Municipal", "EXPENSE"),
)

CODE_LEVELS = (1, 2, 4, 6)


def parent_code(code: str):
    """
    Code of the parent account, or None for a class-level account.

    >>> parent_code("110101")
    '1101'
    >>> parent_code("11")
    '1'
    """
    length = len(code)
    if length not in CODE_LEVELS or length == CODE_LEVELS[0]:
        return None
    return code[:CODE_LEVELS[CODE_LEVELS.index(length) - 1]]


@transaction.atomic
def seed_chart_of_accounts(company, chart=SV_CHART_OF_ACCOUNTS) -> int:
    """
    Create any missing accounts of ``chart`` for ``company`` and link parents.

    Existing codes are left untouched, so running it twice is harmless.
    Returns the number of accounts created.
    """
    existing = {a.code: a for a in Account.objects.filter(company=company)}
    created = 0

    with bootstrap_writes_allowed():
        # Chart rows are listed parent-first.
        for code, name, account_type in chart:
            if code in existing:
                continue
            parent = existing.get(parent_code(code))
            existing[code] = Account.objects.create(
                company=company,
                code=code,
                name=name,
                account_type=account_type,
                parent=parent,
            )
            created += 1

    logger.info(
        "Chart of accounts seeded",
        extra={"company_id": company.id, "created": created, "total": len(existing)},
    )
    return created
