# provision/templates.py
# -*- coding: utf-8 -*-
"""
Response-file templates for the silent database installation.

Placeholders are named ``str.format`` fields resolved against
``InstallConfig.template_bindings()``; ``{{`` / ``}}`` are literal braces
that the installer expands itself.
"""

from typing import Dict

from provision.config_models import InstallConfig

INSTALL_RESPONSE_FILE = "install.rsp"
DBCA_RESPONSE_FILE = "dbca.rsp"

INSTALL_RSP_TEMPLATE = """\
oracle.install.responseFileVersion=/oracle/install/rspfmt_dbinstall_response_schema_v19.0.0
oracle.install.option=INSTALL_DB_SWONLY
ORACLE_HOSTNAME={hostname}
UNIX_GROUP_NAME={install_group}
INVENTORY_LOCATION={inventory_path}
SELECTED_LANGUAGES=en
ORACLE_HOME={home_path}
ORACLE_BASE={base_path}
oracle.install.db.InstallEdition={edition}
oracle.install.db.OSDBA_GROUP={dba_group}
oracle.install.db.OSOPER_GROUP={oper_group}
oracle.install.db.OSBACKUPDBA_GROUP={dba_group}
oracle.install.db.OSDGDBA_GROUP={dba_group}
oracle.install.db.OSKMDBA_GROUP={dba_group}
oracle.install.db.OSRACDBA_GROUP={dba_group}
oracle.install.db.rootconfig.executeRootScript=false
"""

DBCA_RSP_TEMPLATE = """\
responseFileVersion=/oracle/assistants/rspfmt_dbca_response_schema_v19.0.0
gdbName={global_name}
sid={sid}
databaseConfigType=SI
policyManaged=false
createAsContainerDatabase=true
numberOfPDBs=1
pdbName={pdb_name}
useLocalUndoForPDBs=true
templateName=General_Purpose.dbc
sysPassword={sys_password}
systemPassword={system_password}
emConfiguration=NONE
emExpressPort={em_express_port}
runCVUChecks=FALSE
dbsnmpPassword={dbsnmp_password}
dvConfiguration=false
olsConfiguration=false
datafileJarLocation={{ORACLE_HOME}}/assistants/dbca/templates/
datafileDestination={{ORACLE_BASE}}/oradata/
recoveryAreaDestination={{ORACLE_BASE}}/fast_recovery_area/
storageType=FS
characterSet={charset}
nationalCharacterSet={national_charset}
registerWithDirService=false
listeners=LISTENER
variables=ORACLE_BASE_HOME={home_path},ORACLE_BASE={base_path}
initParams=sga_target={memory_percent}%MEMORY_TARGET,pga_aggregate_target={memory_percent}%MEMORY_TARGET,db_create_file_dest={base_path}/oradata/,db_recovery_file_dest={base_path}/fast_recovery_area/,audit_file_dest={base_path}/admin/{sid}/adump/,audit_trail=db,dispatchers=(PROTOCOL=TCP) (SERVICE={sid}XDB),remote_login_passwordfile=EXCLUSIVE
sampleSchema={sample_schema}
enableArchive={archive_log_mode}
memoryPercentage={memory_percent}
databaseType=MULTIPURPOSE
automaticMemoryManagement=false
totalMemory=0
"""


def database_environment(config: InstallConfig, windows: bool = False) -> Dict[str, str]:
    """Variables the database owner needs in every login session."""
    home = str(config.home_path)
    variables = {
        "ORACLE_BASE": str(config.base_path),
        "ORACLE_HOME": home,
        "ORACLE_SID": config.database.sid,
        "NLS_LANG": f"AMERICAN_AMERICA.{config.database.charset}",
    }
    if not windows:
        variables["LD_LIBRARY_PATH"] = "$ORACLE_HOME/lib:/lib:/usr/lib"
        variables["PATH"] = "$ORACLE_HOME/bin:$PATH"
    return variables


def service_environment(config: InstallConfig) -> Dict[str, str]:
    return {
        "ORACLE_HOME": str(config.home_path),
        "ORACLE_SID": config.database.sid,
    }
