"""
QuickBase XML API action catalog
Maps each remote action to its wire name, target kind and response format
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class ActionMapping:
    name: str                       # e.g. "DoQuery"
    account_level: bool = False     # True -> always sent to db/main
    expect_xml: bool = True         # False -> raw HTML/text body returned verbatim
    always_send: Tuple[str, ...] = ()
    description: Optional[str] = None

    @property
    def action(self) -> str:
        """Value of the QUICKBASE-ACTION header."""
        return f"API_{self.name}"


class QuickBaseActions:
    ACTIONS = [
        ActionMapping('AddField', description='Add a field to a table'),
        ActionMapping('AddRecord', description='Add a record'),
        ActionMapping('AddReplaceDBPage', description='Add or replace an application page'),
        ActionMapping('AddUserToRole', description='Assign a user to a role'),
        ActionMapping('Authenticate', account_level=True, description='Obtain a ticket'),
        ActionMapping('ChangeRecordOwner', description='Change the owner of a record'),
        ActionMapping('ChangeUserRole', always_send=('newroleid',), description='Change or disable a user role'),
        ActionMapping('CloneDatabase', description='Copy an application'),
        ActionMapping('CopyMasterDetail', description='Copy a master record with its details'),
        ActionMapping('CreateDatabase', account_level=True, description='Create an application'),
        ActionMapping('CreateTable', description='Add a table to an application'),
        ActionMapping('DeleteDatabase', description='Delete an application or table'),
        ActionMapping('DeleteField', description='Delete a field'),
        ActionMapping('DeleteRecord', description='Delete a record'),
        ActionMapping('DoQuery', description='Query records'),
        ActionMapping('DoQueryCount', description='Count records matching a query'),
        ActionMapping('EditRecord', description='Change field values of a record'),
        ActionMapping('FieldAddChoices', description='Add multiple-choice options'),
        ActionMapping('FieldRemoveChoices', description='Remove multiple-choice options'),
        ActionMapping('FindDBByName', account_level=True, description='Look up an application by name'),
        ActionMapping('GenAddRecordForm', expect_xml=False, description='HTML add-record form'),
        ActionMapping('GenResultsTable', expect_xml=False, description='Query results as HTML/JS/CSV'),
        ActionMapping('GetAncestorInfo', description='Ancestry of a copied application'),
        ActionMapping('GetAppDTMInfo', account_level=True, description='Application modification times'),
        ActionMapping('GetDBInfo', description='Table metadata'),
        ActionMapping('GetDBPage', expect_xml=False, description='Stored application page'),
        ActionMapping('GetDBvar', description='Read an application variable'),
        ActionMapping('GetNumRecords', description='Total record count of a table'),
        ActionMapping('GetRecordAsHTML', expect_xml=False, description='Record rendered as HTML'),
        ActionMapping('GetRecordInfo', description='All field values of one record'),
        ActionMapping('GetRoleInfo', description='Roles defined in an application'),
        ActionMapping('GetSchema', description='Table or application schema'),
        ActionMapping('GetUserInfo', account_level=True, description='Look up a user'),
        ActionMapping('GetUserRole', description='Roles held by a user'),
        ActionMapping('GrantedDBs', account_level=True, description='Applications and tables visible to the user'),
        ActionMapping('ImportFromCSV', description='Add or update records from CSV'),
        ActionMapping('ProvisionUser', description='Create a user and assign a role'),
        ActionMapping('PurgeRecords', description='Delete records matching a query'),
        ActionMapping('RemoveUserFromRole', description='Remove a user from a role'),
        ActionMapping('RenameApp', description='Rename an application'),
        ActionMapping('RunImport', description='Run a saved import'),
        ActionMapping('SendInvitation', description='Invite a user to an application'),
        ActionMapping('SetDBvar', always_send=('value',), description='Set an application variable'),
        ActionMapping('SetFieldProperties', description='Change field properties'),
        ActionMapping('SetKeyField', description='Set the key field of a table'),
        ActionMapping('SignOut', account_level=True, description='End the ticket session'),
        ActionMapping('UploadFile', description='Upload file attachments to a record'),
        ActionMapping('UserRoles', description='Users and their roles in an application'),
    ]

    @classmethod
    def get_action_dict(cls) -> Dict[str, ActionMapping]:
        return {mapping.name: mapping for mapping in cls.ACTIONS}

    @classmethod
    def get(cls, name: str) -> ActionMapping:
        try:
            return cls.get_action_dict()[name]
        except KeyError:
            raise KeyError(f"Unknown QuickBase action: {name}") from None
