"""FastAPI routes for the draw analysis system."""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Any, Optional

from fastapi import FastAPI, HTTPException, Depends, Query, Path, Request, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from api.schemas import (
    SorteoInput, SorteoResponse, ResultadoResponse, ImportRequest, ImportResponse,
    HipotesisInput, HipotesisResponse, PerfilesResponse, PatronesResponse,
    SeleccionResponse, ModoInput, ModoUpdate, EjemploInput, RelacionInput, Pega3Request,
    CacheResponse, HipotesisUpdate, ConversionInput
)
from config.database import DatabaseError
from config.settings import settings
from models.domain import AnalysisContext, DrawEvent, EstadoHipotesis, GameMode, ModeExample, Hypothesis
from analysis.profiles import describir_perfil
from ingestion.importer import DrawImporter
from predictions.pega3 import evaluar_pega3
from predictions.predictor_engine import AnalysisEngine, analysis_engine
from utils.cache import invalidate_analysis_cache

logger = logging.getLogger(__name__)

RATE_LIMIT = f"{settings.rate_limit_requests_per_minute}/minute"

app = FastAPI(
    title="La Diaria - Análisis de sorteos",
    description="API de perfiles, patrones, sesgos y selección final para sorteos de dos cifras",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Rate limiting
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in (settings.cors_origins or "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_engine() -> AnalysisEngine:
    return analysis_engine


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "status_code": status_code, "timestamp": datetime.now().isoformat()},
    )


@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    logger.error(f"Store failure on {request.url.path}: {exc}")
    return _error(503, "Base de datos no disponible")


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error(422, str(exc))


def _hypothesis_out(hyp: Hypothesis) -> HipotesisResponse:
    return HipotesisResponse(
        id=hyp.id, numero=hyp.numero, fecha=hyp.fecha,
        estado=hyp.estado.value if isinstance(hyp.estado, EstadoHipotesis) else str(hyp.estado),
        turno=hyp.turno, pais=hyp.pais,
    )


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "La Diaria - API de análisis",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health", tags=["Health"])
def health_check(engine: AnalysisEngine = Depends(get_engine)):
    """Health check endpoint."""
    if not engine.db.check_connection():
        raise HTTPException(status_code=503, detail="Service unavailable")
    return {
        "status": "healthy",
        "database": "connected",
        "cache": engine.cache.get_cache_info().get('connected', False),
        "timestamp": datetime.now().isoformat()
    }


# ----------------------------------------
# Draws
# ----------------------------------------

@app.get("/sorteos", tags=["Sorteos"])
@limiter.limit(RATE_LIMIT)
def listar_sorteos(request: Request, limit: int = Query(100, ge=1, le=5000),
                   engine: AnalysisEngine = Depends(get_engine)) -> List[Dict[str, Any]]:
    """Latest draws of the timeline, newest first."""
    timeline = engine.timeline()
    return [event.to_dict() for event in reversed(timeline[-limit:])]


@app.post("/sorteos", response_model=SorteoResponse, tags=["Sorteos"])
@limiter.limit(RATE_LIMIT)
def registrar_sorteo(request: Request, payload: SorteoInput,
                     dry_run: bool = Query(False), force: bool = Query(False),
                     engine: AnalysisEngine = Depends(get_engine)):
    draw = DrawEvent(numero=payload.numero, fecha=payload.fecha, horario=payload.horario,
                     pais=payload.pais, is_test=payload.is_test)
    return engine.registrar_sorteo(draw, source=payload.fuente, dry_run=dry_run, force=force)


@app.post("/sorteos/resultado", response_model=ResultadoResponse, tags=["Sorteos"])
@limiter.limit(RATE_LIMIT)
def registrar_resultado(request: Request, payload: SorteoInput,
                        engine: AnalysisEngine = Depends(get_engine)):
    """Store a real draw and resolve pending hypotheses against it."""
    draw = DrawEvent(numero=payload.numero, fecha=payload.fecha, horario=payload.horario,
                     pais=payload.pais, is_test=payload.is_test)
    result = engine.registrar_resultado(draw, source=payload.fuente)
    return {'sorteo': result['sorteo'], 'resueltas': result['resueltas']}


@app.post("/sorteos/importar", response_model=ImportResponse, tags=["Sorteos"])
@limiter.limit(RATE_LIMIT)
def importar_sorteos(request: Request, payload: ImportRequest,
                     engine: AnalysisEngine = Depends(get_engine)):
    stats = DrawImporter(engine.draws).import_rows(
        payload.filas, source=payload.fuente, dry_run=payload.dry_run, force=payload.force
    )
    if stats['insertados'] or stats['actualizados']:
        invalidate_analysis_cache(engine.cache)
    return stats


@app.get("/sorteos/duplicados", tags=["Sorteos"])
def listar_duplicados(engine: AnalysisEngine = Depends(get_engine)):
    return engine.draws.find_duplicates()


# ----------------------------------------
# Hypotheses
# ----------------------------------------

@app.post("/hipotesis", response_model=HipotesisResponse, tags=["Hipótesis"])
@limiter.limit(RATE_LIMIT)
def crear_hipotesis(request: Request, payload: HipotesisInput,
                    engine: AnalysisEngine = Depends(get_engine)):
    hyp = engine.narrative.crear_hipotesis(
        payload.numero, payload.fecha,
        turno=payload.turno.value if payload.turno else None,
        pais=payload.pais, notas=payload.notas,
    )
    return _hypothesis_out(hyp)


@app.get("/hipotesis", response_model=List[HipotesisResponse], tags=["Hipótesis"])
def listar_hipotesis(estado: Optional[EstadoHipotesis] = Query(None),
                     engine: AnalysisEngine = Depends(get_engine)):
    return [_hypothesis_out(hyp) for hyp in engine.narrative.listar_hipotesis(estado)]


@app.patch("/hipotesis/{hipotesis_id}", response_model=HipotesisResponse, tags=["Hipótesis"])
def actualizar_hipotesis(payload: HipotesisUpdate, hipotesis_id: int = Path(..., ge=1),
                         engine: AnalysisEngine = Depends(get_engine)):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get('turno') is not None:
        changes['turno'] = changes['turno'].value
    hyp = engine.narrative.actualizar_hipotesis(hipotesis_id, **changes)
    if hyp is None:
        raise HTTPException(status_code=404, detail=f"Hipótesis {hipotesis_id} no existe")
    return _hypothesis_out(hyp)


@app.post("/reglas/conversion", tags=["Hipótesis"])
def registrar_conversion(payload: ConversionInput, engine: AnalysisEngine = Depends(get_engine)):
    return engine.narrative.registrar_conversion_mapa(payload.de, payload.a, payload.nota)


@app.get("/reglas", tags=["Hipótesis"])
def listar_reglas(tipo: Optional[str] = Query(None), engine: AnalysisEngine = Depends(get_engine)):
    return engine.hypotheses.list_rules(tipo)


# ----------------------------------------
# Analysis
# ----------------------------------------

@app.get("/analisis/perfiles", response_model=PerfilesResponse, tags=["Análisis"])
@limiter.limit(RATE_LIMIT)
def obtener_perfiles(request: Request, top: Optional[int] = Query(None, ge=1, le=100),
                     now: Optional[datetime] = Query(None),
                     engine: AnalysisEngine = Depends(get_engine)):
    return engine.resumen_perfiles(now=now, top=top)


@app.get("/analisis/perfiles/{numero}", tags=["Análisis"])
def obtener_perfil_numero(numero: int = Path(..., ge=0, le=99),
                          engine: AnalysisEngine = Depends(get_engine)):
    perfil = engine.knowledge_base.obtener_perfil_numero(numero)
    if perfil is None:
        raise HTTPException(status_code=404, detail=f"Sin datos para el número {numero:02d}")
    return {**perfil.model_dump(mode='json'), 'descripcion': describir_perfil(perfil)}


@app.post("/analisis/reconstruir", tags=["Análisis"])
@limiter.limit("10/minute")
def reconstruir_conocimiento(request: Request, now: Optional[datetime] = Query(None),
                             engine: AnalysisEngine = Depends(get_engine)):
    snapshot = engine.reconstruir_conocimiento(now=now)
    invalidate_analysis_cache(engine.cache)
    return {
        "total_draws": snapshot.total_draws,
        "perfiles": len(snapshot.perfiles),
        "latest_timestamp": snapshot.latest_timestamp.isoformat() if snapshot.latest_timestamp else None,
    }


@app.post("/analisis/patrones", response_model=PatronesResponse, tags=["Análisis"])
@limiter.limit(RATE_LIMIT)
def detectar_patrones(request: Request, contexto: Optional[AnalysisContext] = Body(None),
                      now: Optional[datetime] = Query(None),
                      engine: AnalysisEngine = Depends(get_engine)):
    return engine.detectar_patrones(now=now, contexto=contexto)


@app.post("/analisis/sesgos", tags=["Análisis"])
@limiter.limit(RATE_LIMIT)
def clasificar_sesgos(request: Request, contexto: Optional[AnalysisContext] = Body(None),
                      now: Optional[datetime] = Query(None),
                      engine: AnalysisEngine = Depends(get_engine)):
    sesgos = engine.clasificar_sesgos(now=now, contexto=contexto)
    return {
        **{level: [c.to_dict() for c in sesgos[level]] for level in ('fuertes', 'moderados', 'debiles')},
        'window': sesgos['window'],
    }


@app.post("/analisis/seleccion", response_model=SeleccionResponse, tags=["Análisis"])
@limiter.limit(RATE_LIMIT)
def seleccion_final(request: Request, contexto: Optional[AnalysisContext] = Body(None),
                    now: Optional[datetime] = Query(None), usar_cache: bool = Query(True),
                    engine: AnalysisEngine = Depends(get_engine)):
    """Top picks, secondaries and wildcard for the next slot."""
    return engine.seleccion_final(now=now, contexto=contexto, use_cache=usar_cache)


# ----------------------------------------
# Modes and triggers
# ----------------------------------------

@app.get("/modos", tags=["Modos"])
def listar_modos(engine: AnalysisEngine = Depends(get_engine)):
    return [
        asdict(mode)
        for mode in engine.modes.list_modes_with_examples()
    ]


@app.post("/modos", tags=["Modos"])
@limiter.limit(RATE_LIMIT)
def crear_modo(request: Request, payload: ModoInput, engine: AnalysisEngine = Depends(get_engine)):
    mode = engine.modes.create_mode(GameMode(
        nombre=payload.nombre,
        tipo=payload.tipo,
        descripcion=payload.descripcion,
        operacion=payload.operacion,
        parametros=payload.parametros,
        offset=payload.offset,
        ejemplos=[ModeExample(original=e.original, resultado=e.resultado, nota=e.nota)
                  for e in payload.ejemplos],
    ))
    return asdict(mode)


@app.put("/modos/{mode_id}", tags=["Modos"])
def actualizar_modo(payload: ModoUpdate, mode_id: int = Path(..., ge=1),
                    engine: AnalysisEngine = Depends(get_engine)):
    mode = engine.modes.update_mode(mode_id, **payload.model_dump(exclude_unset=True))
    if mode is None:
        raise HTTPException(status_code=404, detail=f"Modo {mode_id} no existe")
    return asdict(mode)


@app.delete("/modos/{mode_id}", tags=["Modos"])
def eliminar_modo(mode_id: int = Path(..., ge=1), engine: AnalysisEngine = Depends(get_engine)):
    if not engine.modes.delete_mode(mode_id):
        raise HTTPException(status_code=404, detail=f"Modo {mode_id} no existe")
    return {"deleted": mode_id}


@app.post("/modos/{mode_id}/ejemplos", tags=["Modos"])
def agregar_ejemplo(payload: EjemploInput, mode_id: int = Path(..., ge=1),
                    engine: AnalysisEngine = Depends(get_engine)):
    ejemplo = engine.modes.add_example(
        mode_id, ModeExample(original=payload.original, resultado=payload.resultado, nota=payload.nota)
    )
    return asdict(ejemplo)


@app.get("/modos/evaluacion", tags=["Modos"])
@limiter.limit(RATE_LIMIT)
def evaluar_modos(request: Request, engine: AnalysisEngine = Depends(get_engine)):
    result = engine.evaluar_modos()
    if result is None:
        return {"mensaje": "Datos insuficientes", "score_por_numero": {}, "detalle_por_numero": {},
                "sugerencias": [], "estadisticas": []}
    return result


@app.post("/disparadores", tags=["Disparadores"])
@limiter.limit(RATE_LIMIT)
def crear_relacion(request: Request, payload: RelacionInput,
                   engine: AnalysisEngine = Depends(get_engine)):
    return engine.triggers.create_relation(payload.model_dump())


@app.get("/disparadores/backtest", tags=["Disparadores"])
@limiter.limit(RATE_LIMIT)
def backtest_disparadores(request: Request, now: Optional[datetime] = Query(None),
                          engine: AnalysisEngine = Depends(get_engine)):
    return engine.evaluar_disparadores(now=now)


# ----------------------------------------
# Reports
# ----------------------------------------

@app.get("/reportes/semanal", tags=["Reportes"])
@limiter.limit(RATE_LIMIT)
def secuencias_semanales(request: Request, pais: Optional[str] = Query(None),
                         turno: Optional[str] = Query(None),
                         max_samples: int = Query(12, ge=4, le=52),
                         engine: AnalysisEngine = Depends(get_engine)):
    return engine.secuencias_semanales(pais=pais, turno=turno, max_samples=max_samples)


@app.get("/reportes/comparacion-mensual", tags=["Reportes"])
@limiter.limit(RATE_LIMIT)
def comparacion_mensual(request: Request, dow: Optional[int] = Query(None, ge=0, le=6),
                        pais: Optional[str] = Query(None), turno: Optional[str] = Query(None),
                        engine: AnalysisEngine = Depends(get_engine)):
    return engine.comparacion_mensual(dow, pais=pais, turno=turno)


@app.get("/reportes/mensual/{mes}", tags=["Reportes"])
@limiter.limit(RATE_LIMIT)
def patrones_mensuales(request: Request, mes: int = Path(..., ge=1, le=12),
                       pais: Optional[str] = Query(None), turno: Optional[str] = Query(None),
                       years_back: int = Query(5, ge=1, le=30),
                       engine: AnalysisEngine = Depends(get_engine)):
    return engine.patrones_mensuales(mes, pais=pais, turno=turno, years_back=years_back)


@app.post("/pega3", tags=["Pega 3"])
@limiter.limit(RATE_LIMIT)
def motor_pega3(request: Request, payload: Pega3Request, engine: AnalysisEngine = Depends(get_engine)):
    externa = engine.timeline() if payload.usar_externa else None
    return evaluar_pega3(payload.sorteos, externa)


# ----------------------------------------
# Administration
# ----------------------------------------

@app.delete("/cache/limpiar", response_model=CacheResponse, tags=["Administración"])
@limiter.limit("10/hour")
def limpiar_cache(request: Request, engine: AnalysisEngine = Depends(get_engine)):
    removed = invalidate_analysis_cache(engine.cache)
    return CacheResponse(message="Caché de análisis limpiado", keys_eliminadas=removed,
                         timestamp=datetime.now())


@app.on_event("startup")
async def startup_event():
    logger.info("Starting draw analysis API")
    analysis_engine.db.init_database()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down draw analysis API")
    analysis_engine.cache.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.routes:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )
